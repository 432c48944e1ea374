from .latency_matrix import LatencyMatrix
from .vivaldi_simulation import VivaldiSimulation

__all__ = [
    "LatencyMatrix",
    "VivaldiSimulation",
]

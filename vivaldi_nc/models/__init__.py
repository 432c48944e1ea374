from .coordinates import (
    C_DELTA,
    C_ERROR,
    DEFAULT_DIMENSIONS,
    DEFAULT_ERROR,
    DEFAULT_HEIGHT,
    MAX_ERROR,
    MIN_ERROR,
    MIN_HEIGHT,
    Coordinate,
    VivaldiConfig,
    estimate_rtt,
)
from .vector import (
    UniformSource,
    Vector,
    add,
    distance,
    norm,
    random_unit_vector,
    scale,
    scaled_add,
    subtract,
    unit_direction,
)

__all__ = [
    "C_DELTA",
    "C_ERROR",
    "DEFAULT_DIMENSIONS",
    "DEFAULT_ERROR",
    "DEFAULT_HEIGHT",
    "MAX_ERROR",
    "MIN_ERROR",
    "MIN_HEIGHT",
    "Coordinate",
    "UniformSource",
    "Vector",
    "VivaldiConfig",
    "add",
    "distance",
    "estimate_rtt",
    "norm",
    "random_unit_vector",
    "scale",
    "scaled_add",
    "subtract",
    "unit_direction",
]

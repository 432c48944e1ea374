from __future__ import annotations

import io
import pathlib
from typing import Iterator, Sequence

import numpy as np


class LatencyMatrix:
    """
    Square matrix of measured RTTs in milliseconds.

    Row ``i``, column ``j`` holds the RTT observed from node ``i`` to node
    ``j``. The diagonal is ignored. Text input uses the PlanetLab layout:
    one row per line, whitespace separated values in milliseconds.
    """

    def __init__(self, rtts: np.ndarray | Sequence[Sequence[float]]) -> None:
        matrix = np.array(rtts, dtype=np.float64)

        if matrix.ndim != 2 or matrix.shape[0] != matrix.shape[1]:
            raise ValueError(f"Latency matrix must be square, got shape {matrix.shape}")

        if matrix.shape[0] < 2:
            raise ValueError("Latency matrix needs at least two nodes")

        if not np.all(np.isfinite(matrix)):
            raise ValueError("Latency matrix contains non-finite values")

        if np.any(matrix < 0.0):
            raise ValueError("Latency matrix contains negative RTTs")

        matrix.setflags(write=False)
        self._matrix = matrix

    @classmethod
    def from_text(cls, text: str) -> LatencyMatrix:
        return cls(np.loadtxt(io.StringIO(text), dtype=np.float64, ndmin=2))

    @classmethod
    def load(cls, path: str | pathlib.Path) -> LatencyMatrix:
        return cls(np.loadtxt(path, dtype=np.float64, ndmin=2))

    @property
    def size(self) -> int:
        return int(self._matrix.shape[0])

    @property
    def values(self) -> np.ndarray:
        return self._matrix

    def rtt(self, local_index: int, remote_index: int) -> float:
        return float(self._matrix[local_index, remote_index])

    def pairs(self) -> Iterator[tuple[int, int]]:
        """Every ordered pair of distinct nodes, row by row."""
        for local_index in range(self.size):
            for remote_index in range(self.size):
                if local_index != remote_index:
                    yield local_index, remote_index

    def symmetrized(self) -> LatencyMatrix:
        return LatencyMatrix((self._matrix + self._matrix.T) / 2.0)

    def mean_absolute_error(self, estimates: np.ndarray) -> float:
        """Mean absolute difference from ``estimates`` over off-diagonal entries."""
        estimates = np.asarray(estimates, dtype=np.float64)
        if estimates.shape != self._matrix.shape:
            raise ValueError(
                f"Estimate shape {estimates.shape} does not match {self._matrix.shape}"
            )

        off_diagonal = ~np.eye(self.size, dtype=bool)
        return float(np.abs(estimates - self._matrix)[off_diagonal].mean())

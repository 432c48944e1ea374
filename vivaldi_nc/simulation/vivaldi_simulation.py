from __future__ import annotations

import random

import numpy as np

from vivaldi_nc.coordinates import NetworkCoordinateEngine
from vivaldi_nc.logging.streams import LoggerStream
from vivaldi_nc.logging.vivaldi_logging_models import SimulationInfo
from vivaldi_nc.models import Coordinate, VivaldiConfig, estimate_rtt

from .latency_matrix import LatencyMatrix


class VivaldiSimulation:
    """
    Drives one coordinate engine per node of a latency matrix.

    A round applies every off-diagonal sample once, in row order. Each
    update sees a snapshot of the remote coordinate taken just before it,
    so the run is fully determined by the matrix, config and seed.
    """

    def __init__(
        self,
        matrix: LatencyMatrix,
        config: VivaldiConfig | None = None,
        seed: int = 0,
        logger: LoggerStream | None = None,
    ) -> None:
        self._matrix = matrix
        self._config = config or VivaldiConfig()
        self._logger = logger if logger is not None else LoggerStream(name="vivaldi.simulation")

        seeds = random.Random(seed)
        self._engines = [
            NetworkCoordinateEngine(
                config=self._config,
                rng=random.Random(seeds.getrandbits(64)),
                logger=self._logger,
            )
            for _ in range(matrix.size)
        ]
        self._rounds = 0

    @property
    def matrix(self) -> LatencyMatrix:
        return self._matrix

    @property
    def engines(self) -> tuple[NetworkCoordinateEngine, ...]:
        return tuple(self._engines)

    @property
    def rounds(self) -> int:
        return self._rounds

    def coordinates(self) -> list[Coordinate]:
        return [engine.get_coordinate() for engine in self._engines]

    def run_round(self) -> None:
        for local_index, remote_index in self._matrix.pairs():
            remote = self._engines[remote_index].get_coordinate()
            self._engines[local_index].update(
                remote,
                self._matrix.rtt(local_index, remote_index),
            )

        self._rounds += 1

    def estimated_matrix(self) -> np.ndarray:
        coordinates = self.coordinates()
        estimates = np.zeros((self._matrix.size, self._matrix.size), dtype=np.float64)

        for local_index, remote_index in self._matrix.pairs():
            estimates[local_index, remote_index] = estimate_rtt(
                coordinates[local_index],
                coordinates[remote_index],
            )

        return estimates

    def mean_absolute_error(self) -> float:
        return self._matrix.mean_absolute_error(self.estimated_matrix())

    def mean_local_error(self) -> float:
        return float(
            np.mean([engine.get_coordinate().local_error for engine in self._engines])
        )

    def run(self, rounds: int, checkpoint_every: int = 1) -> list[float]:
        """
        Run ``rounds`` rounds and return the mean absolute error (ms)
        measured after every ``checkpoint_every`` rounds.
        """
        if checkpoint_every < 1:
            raise ValueError(f"checkpoint_every must be at least 1, got {checkpoint_every}")

        checkpoints: list[float] = []
        for round_index in range(1, rounds + 1):
            self.run_round()

            if round_index % checkpoint_every == 0:
                error = self.mean_absolute_error()
                checkpoints.append(error)

                self._logger.log(
                    SimulationInfo(
                        message="Simulation checkpoint",
                        nodes=self._matrix.size,
                        dimensions=self._config.dimensions,
                        round=self._rounds,
                        mean_absolute_error_ms=error,
                        mean_local_error=self.mean_local_error(),
                    )
                )

        return checkpoints

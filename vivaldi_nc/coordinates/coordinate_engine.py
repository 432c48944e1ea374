import datetime
import math
import random
import sys

import numpy as np

from vivaldi_nc.errors import DimensionMismatchError, InvalidSampleError
from vivaldi_nc.logging.models import LogLevel
from vivaldi_nc.logging.streams import LoggerStream
from vivaldi_nc.logging.vivaldi_logging_models import (
    CoordinateReset,
    CoordinateUpdateTrace,
    DegenerateDirectionDebug,
    SampleRejected,
)
from vivaldi_nc.models.coordinates import (
    Coordinate,
    VivaldiConfig,
    estimate_rtt,
)
from vivaldi_nc.models.vector import (
    ZERO_THRESHOLD,
    UniformSource,
    Vector,
    distance,
    scaled_add,
    unit_direction,
)


class NetworkCoordinateEngine:
    """
    Owns one node's Vivaldi coordinate and folds RTT samples into it.

    Each call to ``update`` applies one sample: the local coordinate is
    pushed away from (or pulled toward) the remote coordinate in proportion
    to the gap between measured and estimated RTT, weighted by how much the
    local node trusts itself relative to the remote node.

    The engine is synchronous and holds no locks. Callers sharing one
    engine across threads must serialize calls to ``update`` themselves.
    """

    def __init__(
        self,
        config: VivaldiConfig | None = None,
        dimensions: int | None = None,
        rng: UniformSource | None = None,
        logger: LoggerStream | None = None,
        coordinate: Coordinate | None = None,
    ) -> None:
        if config is None:
            config = (
                VivaldiConfig()
                if dimensions is None
                else VivaldiConfig(dimensions=dimensions)
            )

        self._config = config
        self._dimensions = dimensions if dimensions is not None else config.dimensions
        self._ce = config.ce
        self._cc = config.cc
        self._min_error = config.min_error
        self._max_error = config.max_error
        self._min_height = config.min_height
        self._single_precision = config.precision == "single"

        self._rng = rng if rng is not None else random.Random(config.random_seed)
        self._logger = logger if logger is not None else LoggerStream(name="vivaldi")

        if coordinate is None:
            coordinate = Coordinate.create(self._dimensions, config)

        elif coordinate.dimensions != self._dimensions:
            raise DimensionMismatchError(self._dimensions, coordinate.dimensions)

        self._coordinate = coordinate.copy()
        self._sample_count = 0
        self._rejected_count = 0

    @property
    def dimensions(self) -> int:
        return self._dimensions

    @property
    def sample_count(self) -> int:
        """Number of accepted RTT samples."""
        return self._sample_count

    @property
    def rejected_count(self) -> int:
        """Number of samples rejected as invalid."""
        return self._rejected_count

    def get_coordinate(self) -> Coordinate:
        return self._coordinate.copy()

    def get_config(self) -> VivaldiConfig:
        return self._config

    def reset(self) -> Coordinate:
        """Drop all learned state and start again from the origin."""
        self._coordinate = Coordinate.create(self._dimensions, self._config)
        self._sample_count = 0
        self._rejected_count = 0

        return self.get_coordinate()

    def update(
        self,
        remote: Coordinate,
        measured_rtt: float | datetime.timedelta,
    ) -> Coordinate:
        """
        Apply one RTT sample against ``remote`` and return the new coordinate.

        Args:
            remote: The peer's coordinate snapshot. It is never modified.
            measured_rtt: Observed round-trip time, as milliseconds or a
                ``timedelta``. Zero is accepted.

        Returns:
            A copy of the updated local coordinate.

        Raises:
            InvalidSampleError: the RTT is negative, non-finite or not a
                number. The local coordinate is left unchanged.
            DimensionMismatchError: ``remote`` has a different dimension.
                The local coordinate is left unchanged.
        """
        rtt_ms = self._to_milliseconds(measured_rtt)

        local = self._coordinate

        estimated = estimate_rtt(local, remote)
        sample_error = self._sample_error(estimated, rtt_ms)
        weight = self._weight(local.local_error, remote.local_error)

        local_error = self._clamp(
            sample_error * self._ce * weight
            + local.local_error * (1.0 - self._ce * weight),
            self._min_error,
            self._max_error,
        )

        delta = self._cc * weight
        force = delta * (rtt_ms - estimated)

        direction = self._direction(remote.position, local.position)

        # Heights take the share of the force their sum contributes to the
        # current estimate. The position takes the full force.
        height = local.height
        if estimated > 0.0:
            height += force * (local.height + remote.height) / estimated

        height = max(height, self._min_height)
        position = scaled_add(local.position, direction, force)

        if self._single_precision:
            position, height, local_error = self._to_single_precision(
                position,
                height,
                local_error,
            )

        if not (
            position.is_finite()
            and math.isfinite(height)
            and math.isfinite(local_error)
        ):
            self._logger.log(
                CoordinateReset(
                    message="Coordinate update produced a non-finite value, resetting",
                    measured_rtt_ms=rtt_ms,
                    estimated_rtt_ms=estimated,
                    force=force,
                )
            )

            self._coordinate = Coordinate.create(self._dimensions, self._config)
            self._sample_count = 0

            return self.get_coordinate()

        self._sample_count += 1

        local.position = position
        local.height = height
        local.local_error = local_error

        if self._logger.enabled(LogLevel.TRACE):
            self._logger.log(
                CoordinateUpdateTrace(
                    message="Applied RTT sample",
                    measured_rtt_ms=rtt_ms,
                    estimated_rtt_ms=estimated,
                    sample_error=sample_error,
                    weight=weight,
                    force=force,
                    height=height,
                    local_error=local_error,
                )
            )

        return self.get_coordinate()

    @staticmethod
    def estimate_rtt(local: Coordinate, remote: Coordinate) -> float:
        return estimate_rtt(local, remote)

    def estimate_rtt_ms(self, remote: Coordinate) -> float:
        """Estimated RTT from the local coordinate to ``remote`` in milliseconds."""
        return estimate_rtt(self._coordinate, remote)

    def estimate_rtt_seconds(self, remote: Coordinate) -> float:
        return self.estimate_rtt_ms(remote) / 1000.0

    def estimate_rtt_ucb_ms(
        self,
        remote: Coordinate | None,
        local: Coordinate | None = None,
    ) -> float:
        """
        Estimate RTT with an upper confidence bound.

        Uses the Vivaldi distance plus a safety margin scaled by the
        combined local error of both coordinates. Falls back to
        conservative defaults when the remote coordinate is unknown.

        Formula: rtt_ucb = clamp(rtt_hat + k_sigma * sigma, rtt_min, rtt_max)

        Args:
            remote: Remote coordinate (or None for default)
            local: Local coordinate (defaults to this engine's coordinate)

        Returns:
            RTT upper confidence bound in milliseconds
        """
        if local is None:
            local = self._coordinate

        if remote is None:
            rtt_hat_ms = self._config.rtt_default_ms
            sigma_ms = self._config.sigma_default_ms

        else:
            rtt_hat_ms = estimate_rtt(local, remote)
            # local_error is relative, so scale it by the estimate
            sigma_ms = self._clamp(
                (local.local_error + remote.local_error) * rtt_hat_ms,
                self._config.sigma_min_ms,
                self._config.sigma_max_ms,
            )

        rtt_ucb = rtt_hat_ms + self._config.k_sigma * sigma_ms

        return self._clamp(
            rtt_ucb,
            self._config.rtt_min_ms,
            self._config.rtt_max_ms,
        )

    def is_converged(self) -> bool:
        """
        True once the local error is below the convergence threshold and
        enough samples have been applied.
        """
        error_converged = (
            self._coordinate.local_error <= self._config.convergence_error_threshold
        )
        samples_sufficient = self._sample_count >= self._config.convergence_min_samples

        return error_converged and samples_sufficient

    def _to_milliseconds(self, measured_rtt: float | datetime.timedelta) -> float:
        if isinstance(measured_rtt, datetime.timedelta):
            rtt_ms = measured_rtt.total_seconds() * 1000.0

        else:
            try:
                rtt_ms = float(measured_rtt)

            except (TypeError, ValueError, OverflowError):
                rtt_ms = math.nan

        if not math.isfinite(rtt_ms) or rtt_ms < 0.0:
            self._rejected_count += 1
            self._logger.log(
                SampleRejected(
                    message="Rejected invalid RTT sample",
                    measured_rtt_ms=rtt_ms,
                )
            )

            raise InvalidSampleError(measured_rtt)

        return rtt_ms

    def _sample_error(self, estimated: float, rtt_ms: float) -> float:
        difference = abs(estimated - rtt_ms)
        if rtt_ms > 0.0:
            # saturate rather than overflow for vanishingly small RTTs
            return min(difference / rtt_ms, sys.float_info.max)

        return min(difference, self._max_error)

    def _direction(self, remote_position: Vector, local_position: Vector) -> Vector:
        if self._logger.enabled(LogLevel.DEBUG):
            separation = distance(remote_position, local_position)
            if separation <= ZERO_THRESHOLD:
                self._logger.log(
                    DegenerateDirectionDebug(
                        message="Coincident positions, using a random direction",
                        dimensions=self._dimensions,
                        distance=separation,
                    )
                )

        return unit_direction(remote_position, local_position, self._rng)

    @staticmethod
    def _to_single_precision(
        position: Vector,
        height: float,
        local_error: float,
    ) -> tuple[Vector, float, float]:
        with np.errstate(over="ignore"):
            rounded = np.asarray(
                [*position.values, height, local_error],
                dtype=np.float32,
            ).astype(np.float64)

        return (
            Vector(tuple(float(component) for component in rounded[:-2])),
            float(rounded[-2]),
            float(rounded[-1]),
        )

    @staticmethod
    def _weight(local_error: float, remote_error: float) -> float:
        denom = local_error + remote_error
        if denom <= 0.0:
            return 0.5
        return NetworkCoordinateEngine._clamp(local_error / denom, 0.0, 1.0)

    @staticmethod
    def _clamp(value: float, min_value: float, max_value: float) -> float:
        return max(min_value, min(max_value, value))

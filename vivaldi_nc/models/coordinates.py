from __future__ import annotations

import math
import os
from dataclasses import dataclass
from typing import Callable, Iterable, Literal, TypeVar

import msgspec

from vivaldi_nc.env import Env
from vivaldi_nc.errors import InvalidConfigError, InvalidCoordinateError

from .vector import Vector, check_dimensions, distance


T = TypeVar("T")

# Vivaldi tuning parameters. Larger values converge faster but let a
# single noisy sample move a coordinate further.
C_ERROR = 0.25
C_DELTA = 0.25

DEFAULT_DIMENSIONS = 3

# Local error starts at "no confidence" and is held inside [MIN_ERROR, MAX_ERROR].
DEFAULT_ERROR = 1.0
MIN_ERROR = 0.0
MAX_ERROR = 1.5

# Height never drops below MIN_HEIGHT once an update has touched it.
DEFAULT_HEIGHT = 1.0e-5
MIN_HEIGHT = 1.0e-5

FloatPrecision = Literal["double", "single"]


def _resolve_env_value(
    env: Env | None,
    name: str,
    default: T,
    cast: Callable[[object], T],
) -> T:
    env_value = getattr(env, name, None) if env is not None else None
    if env_value is not None:
        return cast(env_value)
    raw_value = os.getenv(name)
    if raw_value is not None:
        return cast(raw_value)
    return default


@dataclass(slots=True)
class VivaldiConfig:
    """
    Configuration for the Vivaldi coordinate engine.

    Provides tuning parameters for coordinate updates, RTT upper
    confidence bounds, and convergence checks. Changing ``ce`` or ``cc``
    trades convergence speed against stability; the defaults are the
    values published with the algorithm.
    """
    # Coordinate space
    dimensions: int = DEFAULT_DIMENSIONS
    precision: FloatPrecision = "double"
    random_seed: int | None = None

    # Update algorithm parameters
    ce: float = C_ERROR  # Local error smoothing factor
    cc: float = C_DELTA  # Maximum fraction of the discrepancy applied per sample
    initial_error: float = DEFAULT_ERROR
    min_error: float = MIN_ERROR
    max_error: float = MAX_ERROR
    initial_height: float = DEFAULT_HEIGHT
    min_height: float = MIN_HEIGHT

    # RTT UCB parameters
    k_sigma: float = 2.0  # UCB multiplier for error margin
    rtt_default_ms: float = 100.0  # Default RTT when coordinate unavailable
    sigma_default_ms: float = 50.0  # Default sigma when coordinate unavailable
    sigma_min_ms: float = 1.0
    sigma_max_ms: float = 500.0
    rtt_min_ms: float = 1.0
    rtt_max_ms: float = 10000.0

    # Convergence thresholds
    convergence_error_threshold: float = 0.5
    convergence_min_samples: int = 10

    def __post_init__(self) -> None:
        if self.dimensions < 1:
            raise InvalidConfigError(
                f"dimensions must be at least 1, got {self.dimensions}"
            )

        if self.precision not in ("double", "single"):
            raise InvalidConfigError(
                f"precision must be 'double' or 'single', got {self.precision!r}"
            )

        for name in ("ce", "cc"):
            value = getattr(self, name)
            if not 0.0 < value <= 1.0:
                raise InvalidConfigError(f"{name} must be in (0, 1], got {value}")

        if not (
            0.0 <= self.min_error <= self.initial_error <= self.max_error
            and math.isfinite(self.max_error)
        ):
            raise InvalidConfigError(
                "errors must satisfy 0 <= min_error <= initial_error <= max_error, "
                f"got {self.min_error}, {self.initial_error}, {self.max_error}"
            )

        if not (0.0 < self.min_height and math.isfinite(self.min_height)):
            raise InvalidConfigError(
                f"min_height must be positive, got {self.min_height}"
            )

        if not (0.0 <= self.initial_height and math.isfinite(self.initial_height)):
            raise InvalidConfigError(
                f"initial_height must be non-negative, got {self.initial_height}"
            )

    @classmethod
    def from_env(cls, env: Env | None = None) -> "VivaldiConfig":
        return cls(
            dimensions=_resolve_env_value(
                env, "VIVALDI_DIMENSIONS", DEFAULT_DIMENSIONS, int
            ),
            precision=_resolve_env_value(
                env, "VIVALDI_FLOAT_PRECISION", "double", str
            ),
            random_seed=_resolve_env_value(env, "VIVALDI_RANDOM_SEED", None, int),
            ce=_resolve_env_value(env, "VIVALDI_CE", C_ERROR, float),
            cc=_resolve_env_value(env, "VIVALDI_CC", C_DELTA, float),
            initial_error=_resolve_env_value(
                env, "VIVALDI_INITIAL_ERROR", DEFAULT_ERROR, float
            ),
            min_error=_resolve_env_value(env, "VIVALDI_MIN_ERROR", MIN_ERROR, float),
            max_error=_resolve_env_value(env, "VIVALDI_MAX_ERROR", MAX_ERROR, float),
            initial_height=_resolve_env_value(
                env, "VIVALDI_INITIAL_HEIGHT", DEFAULT_HEIGHT, float
            ),
            min_height=_resolve_env_value(
                env, "VIVALDI_MIN_HEIGHT", MIN_HEIGHT, float
            ),
        )


class Coordinate:
    """
    Network coordinate for RTT estimation using the height-vector model.

    ``position`` places the node in a Euclidean latency space (ms),
    ``height`` is the access-link delay added on top of Euclidean distance,
    and ``local_error`` is the node's confidence in its own coordinate,
    where 0 is perfect confidence.

    All three fields are plain numbers and are validated on assignment:
    a negative or non-finite height is never accepted.
    """

    __slots__ = ("_position", "_height", "_local_error")

    def __init__(
        self,
        position: Vector | Iterable[float],
        height: float = DEFAULT_HEIGHT,
        local_error: float = DEFAULT_ERROR,
    ) -> None:
        self.position = position
        self.height = height
        self.local_error = local_error

    @classmethod
    def create(
        cls,
        dimensions: int | None = None,
        config: VivaldiConfig | None = None,
    ) -> Coordinate:
        """Fresh coordinate at the origin with maximal uncertainty."""
        if config is None:
            config = VivaldiConfig()

        if dimensions is None:
            dimensions = config.dimensions

        return cls(
            position=Vector.zeros(dimensions),
            height=config.initial_height,
            local_error=config.initial_error,
        )

    @property
    def position(self) -> Vector:
        return self._position

    @position.setter
    def position(self, position: Vector | Iterable[float]) -> None:
        if not isinstance(position, Vector):
            position = Vector.of(position)

        if not position.is_finite():
            raise InvalidCoordinateError(
                f"Coordinate position must be finite, got {position.values}"
            )

        self._position = position

    @property
    def height(self) -> float:
        return self._height

    @height.setter
    def height(self, height: float) -> None:
        height = float(height)
        if not math.isfinite(height) or height < 0.0:
            raise InvalidCoordinateError(
                f"Coordinate height must be finite and non-negative, got {height}"
            )

        self._height = height

    @property
    def local_error(self) -> float:
        return self._local_error

    @local_error.setter
    def local_error(self, local_error: float) -> None:
        local_error = float(local_error)
        if not math.isfinite(local_error) or local_error < 0.0:
            raise InvalidCoordinateError(
                f"Coordinate local error must be finite and non-negative, got {local_error}"
            )

        self._local_error = local_error

    @property
    def dimensions(self) -> int:
        return self._position.dimensions

    def estimate_rtt(self, remote: Coordinate) -> float:
        """Estimated RTT to ``remote`` in milliseconds."""
        return estimate_rtt(self, remote)

    def copy(self) -> Coordinate:
        return Coordinate(
            position=self._position,
            height=self._height,
            local_error=self._local_error,
        )

    def to_dict(self) -> dict[str, float | list[float]]:
        """
        Serialize coordinate to a dictionary of plain numeric fields.

        Returns:
            Dict with position, height and local_error
        """
        return {
            "position": list(self._position.values),
            "height": self._height,
            "local_error": self._local_error,
        }

    @classmethod
    def from_dict(cls, data: dict) -> Coordinate:
        """
        Deserialize coordinate from a dictionary.

        Args:
            data: Dictionary with position, height and local_error

        Returns:
            Coordinate instance

        Raises:
            InvalidCoordinateError: if any field is missing, malformed or out of range
        """
        try:
            position = data["position"]
            height = data["height"]
            local_error = data["local_error"]

        except KeyError as err:
            raise InvalidCoordinateError(
                f"Coordinate is missing field {err.args[0]!r}"
            ) from err

        try:
            position = Vector.of(position)
            height = float(height)
            local_error = float(local_error)

        except (TypeError, ValueError, OverflowError) as err:
            raise InvalidCoordinateError(f"Malformed coordinate field: {err}") from err

        return cls(
            position=position,
            height=height,
            local_error=local_error,
        )

    def to_bytes(self) -> bytes:
        return msgspec.msgpack.encode(self.to_dict())

    @classmethod
    def from_bytes(cls, data: bytes) -> Coordinate:
        try:
            parsed = msgspec.msgpack.decode(data)

        except msgspec.DecodeError as err:
            raise InvalidCoordinateError(f"Malformed coordinate payload: {err}") from err

        if not isinstance(parsed, dict):
            raise InvalidCoordinateError("Malformed coordinate payload: expected a map")

        return cls.from_dict(parsed)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Coordinate):
            return NotImplemented

        return (
            self._position == other._position
            and self._height == other._height
            and self._local_error == other._local_error
        )

    __hash__ = None

    def __repr__(self) -> str:
        return (
            f"Coordinate(position={list(self._position.values)}, "
            f"height={self._height}, local_error={self._local_error})"
        )


def estimate_rtt(local: Coordinate, remote: Coordinate) -> float:
    """
    Estimated RTT between two coordinates in milliseconds.

    Euclidean distance between the positions plus both heights. The result
    is symmetric in its arguments and never negative.
    """
    check_dimensions(local.position, remote.position)
    return distance(local.position, remote.position) + (local.height + remote.height)

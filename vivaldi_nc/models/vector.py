from __future__ import annotations

import math
from typing import Iterable, Iterator, Protocol

import msgspec

from vivaldi_nc.errors import DimensionMismatchError


# Distances at or below this are treated as coincident points.
ZERO_THRESHOLD = 1.0e-9

# Resampling budget before falling back to the first basis axis.
MAX_DIRECTION_ATTEMPTS = 8


class UniformSource(Protocol):
    """Anything with a ``uniform(a, b)`` method, e.g. ``random.Random``."""

    def uniform(self, a: float, b: float) -> float: ...


class Vector(msgspec.Struct, frozen=True):
    """
    Fixed-dimension real vector in latency space (milliseconds).

    Vectors are immutable values: every operation returns a new vector and
    two vectors are equal when their components are equal. Operations
    between vectors of different dimensions raise DimensionMismatchError.
    """

    values: tuple[float, ...]

    @classmethod
    def of(cls, values: Iterable[float]) -> Vector:
        components = tuple(float(value) for value in values)
        if len(components) < 1:
            raise ValueError("Vector requires at least one dimension")

        return cls(components)

    @classmethod
    def zeros(cls, dimensions: int) -> Vector:
        if dimensions < 1:
            raise ValueError(f"Vector requires at least one dimension, got {dimensions}")

        return cls(tuple(0.0 for _ in range(dimensions)))

    @classmethod
    def axis(cls, dimensions: int, index: int = 0) -> Vector:
        """Unit basis vector along ``index``."""
        origin = [0.0 for _ in range(dimensions)]
        origin[index] = 1.0
        return cls.of(origin)

    @property
    def dimensions(self) -> int:
        return len(self.values)

    def is_finite(self) -> bool:
        return all(math.isfinite(component) for component in self.values)

    def norm(self) -> float:
        return norm(self)

    def __len__(self) -> int:
        return len(self.values)

    def __iter__(self) -> Iterator[float]:
        return iter(self.values)

    def __getitem__(self, index: int) -> float:
        return self.values[index]

    def __add__(self, other: Vector) -> Vector:
        if not isinstance(other, Vector):
            return NotImplemented

        return add(self, other)

    def __sub__(self, other: Vector) -> Vector:
        if not isinstance(other, Vector):
            return NotImplemented

        return subtract(self, other)

    def __mul__(self, factor: float) -> Vector:
        if isinstance(factor, Vector):
            return NotImplemented

        return scale(self, factor)

    def __rmul__(self, factor: float) -> Vector:
        return self.__mul__(factor)

    def __neg__(self) -> Vector:
        return scale(self, -1.0)


def check_dimensions(left: Vector, right: Vector) -> None:
    if left.dimensions != right.dimensions:
        raise DimensionMismatchError(left.dimensions, right.dimensions)


def add(left: Vector, right: Vector) -> Vector:
    check_dimensions(left, right)
    return Vector(tuple(lhs + rhs for lhs, rhs in zip(left.values, right.values)))


def subtract(left: Vector, right: Vector) -> Vector:
    check_dimensions(left, right)
    return Vector(tuple(lhs - rhs for lhs, rhs in zip(left.values, right.values)))


def scale(vector: Vector, factor: float) -> Vector:
    return Vector(tuple(component * factor for component in vector.values))


def scaled_add(base: Vector, direction: Vector, factor: float) -> Vector:
    """Return ``base + direction * factor``."""
    check_dimensions(base, direction)
    return Vector(
        tuple(
            component + offset * factor
            for component, offset in zip(base.values, direction.values)
        )
    )


def norm(vector: Vector) -> float:
    # hypot avoids the overflow of summing squares
    return math.hypot(*vector.values)


def distance(left: Vector, right: Vector) -> float:
    return norm(subtract(left, right))


def random_unit_vector(dimensions: int, rng: UniformSource) -> Vector:
    """
    Draw a direction with each component uniform in [-1, 1], normalized.

    A near-zero draw is resampled; if every attempt is degenerate the first
    basis axis is returned so the result is always a unit vector.
    """
    for _ in range(MAX_DIRECTION_ATTEMPTS):
        candidate = Vector(
            tuple(rng.uniform(-1.0, 1.0) for _ in range(dimensions))
        )

        magnitude = norm(candidate)
        if magnitude > ZERO_THRESHOLD:
            return Vector(tuple(component / magnitude for component in candidate.values))

    return Vector.axis(dimensions, 0)


def unit_direction(origin: Vector, target: Vector, rng: UniformSource) -> Vector:
    """
    Unit vector pointing from ``origin`` toward ``target``.

    When the two points coincide the direction is undefined, so a random
    unit vector is drawn from ``rng`` instead.
    """
    offset = subtract(target, origin)
    magnitude = norm(offset)

    if magnitude > ZERO_THRESHOLD:
        return Vector(tuple(component / magnitude for component in offset.values))

    return random_unit_vector(offset.dimensions, rng)

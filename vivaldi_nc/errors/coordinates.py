"""
Exceptions raised by the Vivaldi coordinate engine.

Only genuinely invalid input surfaces to the caller. Degenerate geometry,
a zero combined error and height floor violations are handled inside the
engine and never raise.
"""


class VivaldiError(Exception):
    """Base class for all coordinate engine errors."""
    pass


class InvalidSampleError(VivaldiError, ValueError):
    """
    Raised when an RTT sample is negative, NaN or infinite.

    The local coordinate is left untouched when this is raised, so the
    caller can discard the sample and keep going.
    """

    def __init__(self, rtt_ms: float) -> None:
        super().__init__(
            f"RTT sample must be a finite, non-negative number of milliseconds, got {rtt_ms!r}"
        )
        self.rtt_ms = rtt_ms


class InvalidCoordinateError(VivaldiError, ValueError):
    """Raised when a coordinate carries a non-finite or negative field."""
    pass


class DimensionMismatchError(VivaldiError, TypeError):
    """Raised when two vectors or coordinates have different dimensions."""

    def __init__(self, left: int, right: int) -> None:
        super().__init__(f"Vector dimension mismatch: {left} vs {right}")
        self.left = left
        self.right = right


class InvalidConfigError(VivaldiError, ValueError):
    pass

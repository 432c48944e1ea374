from .coordinates import (
    DimensionMismatchError,
    InvalidConfigError,
    InvalidCoordinateError,
    InvalidSampleError,
    VivaldiError,
)

__all__ = [
    "DimensionMismatchError",
    "InvalidConfigError",
    "InvalidCoordinateError",
    "InvalidSampleError",
    "VivaldiError",
]

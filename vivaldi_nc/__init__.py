from .coordinates import NetworkCoordinateEngine as NetworkCoordinateEngine
from .env import Env as Env, load_env as load_env
from .errors import (
    DimensionMismatchError as DimensionMismatchError,
    InvalidConfigError as InvalidConfigError,
    InvalidCoordinateError as InvalidCoordinateError,
    InvalidSampleError as InvalidSampleError,
    VivaldiError as VivaldiError,
)
from .models import (
    Coordinate as Coordinate,
    Vector as Vector,
    VivaldiConfig as VivaldiConfig,
    estimate_rtt as estimate_rtt,
)

from __future__ import annotations

from typing import Callable, Dict, Literal, Union

from pydantic import BaseModel, StrictFloat, StrictInt, StrictStr

PrimaryType = Union[str, int, float, bytes, bool]


class Env(BaseModel):
    # Coordinate space
    VIVALDI_DIMENSIONS: StrictInt = 3
    VIVALDI_FLOAT_PRECISION: Literal["double", "single"] = "double"
    VIVALDI_RANDOM_SEED: StrictInt | None = None

    # Update algorithm tuning
    VIVALDI_CE: StrictFloat = 0.25
    VIVALDI_CC: StrictFloat = 0.25
    VIVALDI_INITIAL_ERROR: StrictFloat = 1.0
    VIVALDI_MIN_ERROR: StrictFloat = 0.0
    VIVALDI_MAX_ERROR: StrictFloat = 1.5
    VIVALDI_INITIAL_HEIGHT: StrictFloat = 1.0e-5
    VIVALDI_MIN_HEIGHT: StrictFloat = 1.0e-5

    # Logging
    VIVALDI_LOG_LEVEL: StrictStr = "info"
    VIVALDI_LOG_OUTPUT: Literal["stdout", "stderr"] = "stderr"
    VIVALDI_LOGS_DIRECTORY: StrictStr | None = None

    @classmethod
    def types_map(cls) -> Dict[str, Callable[[str], PrimaryType]]:
        return {
            "VIVALDI_DIMENSIONS": int,
            "VIVALDI_FLOAT_PRECISION": str,
            "VIVALDI_RANDOM_SEED": int,
            "VIVALDI_CE": float,
            "VIVALDI_CC": float,
            "VIVALDI_INITIAL_ERROR": float,
            "VIVALDI_MIN_ERROR": float,
            "VIVALDI_MAX_ERROR": float,
            "VIVALDI_INITIAL_HEIGHT": float,
            "VIVALDI_MIN_HEIGHT": float,
            "VIVALDI_LOG_LEVEL": str,
            "VIVALDI_LOG_OUTPUT": str,
            "VIVALDI_LOGS_DIRECTORY": str,
        }

    def get_logging_config(self) -> dict:
        """Get LoggingConfig.update() keyword arguments from environment settings."""
        return {
            "log_directory": self.VIVALDI_LOGS_DIRECTORY,
            "log_level": self.VIVALDI_LOG_LEVEL,
            "log_output": self.VIVALDI_LOG_OUTPUT,
        }

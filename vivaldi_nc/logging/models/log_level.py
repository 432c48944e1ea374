from __future__ import annotations

from enum import Enum
from typing import Literal

LogLevelName = Literal[
    'trace',
    'debug',
    'info',
    'warn',
    'error',
    'critical',
    'fatal'
]


class LogLevel(Enum):
    TRACE = "TRACE"
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"
    FATAL = "FATAL"

    @property
    def severity(self) -> int:
        """Position in declaration order, TRACE lowest."""
        return _SEVERITY[self]

    def at_least(self, threshold: LogLevel) -> bool:
        return self.severity >= threshold.severity

    @classmethod
    def to_level(cls, level_name: LogLevelName | str) -> LogLevel:
        try:
            return cls(level_name.upper())

        except ValueError as err:
            raise ValueError(f"Unknown log level: {level_name}") from err


_SEVERITY = {level: rank for rank, level in enumerate(LogLevel)}

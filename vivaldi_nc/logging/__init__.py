from .models import Entry as Entry, Log as Log, LogLevel as LogLevel
from .config import LoggingConfig as LoggingConfig
from .streams import LoggerStream as LoggerStream

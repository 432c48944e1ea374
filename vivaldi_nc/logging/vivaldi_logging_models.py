from .models import Entry, LogLevel


class CoordinateUpdateTrace(Entry, kw_only=True):
    measured_rtt_ms: float
    estimated_rtt_ms: float
    sample_error: float
    weight: float
    force: float
    height: float
    local_error: float
    level: LogLevel = LogLevel.TRACE

class DegenerateDirectionDebug(Entry, kw_only=True):
    dimensions: int
    distance: float
    level: LogLevel = LogLevel.DEBUG

class SampleRejected(Entry, kw_only=True):
    measured_rtt_ms: float
    level: LogLevel = LogLevel.WARN

class CoordinateReset(Entry, kw_only=True):
    measured_rtt_ms: float
    estimated_rtt_ms: float
    force: float
    level: LogLevel = LogLevel.WARN

class SimulationInfo(Entry, kw_only=True):
    nodes: int
    dimensions: int
    round: int
    mean_absolute_error_ms: float
    mean_local_error: float
    level: LogLevel = LogLevel.INFO

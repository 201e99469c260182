from .config import AgentConfig, ConfigError, MetricsLoggerConfig, ShutdownMetricsConfig, load_agent_config_from_env
from .extremum import ExtremumTracker
from .health import READ_FAILED, ChargeStatus, Field, HealthInfo, Sample
from .metrics_logger import BatteryMetricsLogger, Sampler, UploadScheduler
from .shutdown import LowBatteryShutdownMetrics, ShutdownCaptureState

__all__ = [
    "AgentConfig",
    "BatteryMetricsLogger",
    "ChargeStatus",
    "ConfigError",
    "ExtremumTracker",
    "Field",
    "HealthInfo",
    "LowBatteryShutdownMetrics",
    "MetricsLoggerConfig",
    "READ_FAILED",
    "Sample",
    "Sampler",
    "ShutdownCaptureState",
    "ShutdownMetricsConfig",
    "UploadScheduler",
    "load_agent_config_from_env",
]

"""工具模块"""

from .exceptions import DeployHealthError, ConfigError, ProbeError, MonitorStateError
from .log_manager import LogManager, LogLevel, get_logger, configure_logging, log_manager

__all__ = [
    'DeployHealthError', 'ConfigError', 'ProbeError', 'MonitorStateError',
    'LogManager', 'LogLevel', 'get_logger', 'configure_logging', 'log_manager'
]

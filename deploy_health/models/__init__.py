"""数据模型模块"""

from .health_check import HealthCheckConfig, HealthCheckResult, MonitorState, utc_timestamp

__all__ = ['HealthCheckConfig', 'HealthCheckResult', 'MonitorState', 'utc_timestamp']

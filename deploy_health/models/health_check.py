"""健康检查相关的数据模型"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Any, Optional

from ..utils.exceptions import ConfigError

DEFAULT_TIMEOUT_MS = 5000
DEFAULT_CHECK_INTERVAL_MS = 30000

# 配置键的别名，兼容部署配置里的 camelCase 写法
_CONFIG_KEY_ALIASES = {
    'expectedStatus': 'expected_status',
    'timeoutMs': 'timeout_ms',
    'checkIntervalMs': 'check_interval_ms',
}


def normalize_config_keys(data: Dict[str, Any]) -> Dict[str, Any]:
    """将健康检查配置中的 camelCase 键转换为 snake_case"""
    return {_CONFIG_KEY_ALIASES.get(key, key): value for key, value in data.items()}


def validate_health_check_field(field: str, value: Any) -> None:
    """
    校验单个健康检查配置项

    Raises:
        ConfigError: expected_status 不在 100-599 之间，或超时/间隔不是正整数
    """
    is_int = isinstance(value, int) and not isinstance(value, bool)
    if field == 'expected_status':
        if not is_int or not 100 <= value <= 599:
            raise ConfigError("expected_status 必须是 100-599 之间的整数")
    elif not is_int or value <= 0:
        raise ConfigError(f"{field} 必须是正整数")


def utc_timestamp(moment: Optional[datetime] = None) -> str:
    """返回毫秒精度、以 Z 结尾的 ISO-8601 UTC 时间字符串"""
    moment = moment or datetime.now(timezone.utc)
    return moment.astimezone(timezone.utc).isoformat(
        timespec='milliseconds').replace('+00:00', 'Z')


@dataclass(frozen=True)
class HealthCheckConfig:
    """健康检查配置，一次监控会话内不可变"""
    expected_status: int
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    check_interval_ms: int = DEFAULT_CHECK_INTERVAL_MS

    def __post_init__(self):
        for field, value in self.to_dict().items():
            validate_health_check_field(field, value)

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000

    @property
    def check_interval_seconds(self) -> float:
        return self.check_interval_ms / 1000

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'HealthCheckConfig':
        """
        从配置字典创建

        Args:
            data: 包含 expected_status 的字典，timeout_ms / check_interval_ms 可选；
                值为 None 时使用默认值

        Returns:
            HealthCheckConfig: 配置实例

        Raises:
            ConfigError: 配置值无效
        """
        values = normalize_config_keys(data)
        timeout_ms = values.get('timeout_ms')
        check_interval_ms = values.get('check_interval_ms')
        return cls(
            expected_status=values.get('expected_status'),
            timeout_ms=DEFAULT_TIMEOUT_MS if timeout_ms is None else timeout_ms,
            check_interval_ms=(DEFAULT_CHECK_INTERVAL_MS if check_interval_ms is None
                               else check_interval_ms),
        )

    def to_dict(self) -> Dict[str, int]:
        return {
            'expected_status': self.expected_status,
            'timeout_ms': self.timeout_ms,
            'check_interval_ms': self.check_interval_ms,
        }


@dataclass(frozen=True)
class HealthCheckResult:
    """单次探测结果，创建后不再修改"""
    timestamp: str
    url: str
    status: int
    healthy: bool
    response_time_ms: Optional[int] = None
    error: Optional[str] = None

    @property
    def response_time(self) -> str:
        """响应时间的展示形式，如 '123ms'，无响应时为空字符串"""
        if self.response_time_ms is None:
            return ''
        return f"{self.response_time_ms}ms"


@dataclass
class MonitorState:
    """
    监控会话内的连续成功/失败计数

    两个计数器任一时刻至多一个非零
    """
    healthy_streak: int = 0
    unhealthy_streak: int = 0

    def record(self, healthy: bool) -> None:
        """记录一次探测结果"""
        if healthy:
            self.healthy_streak += 1
            self.unhealthy_streak = 0
        else:
            self.unhealthy_streak += 1
            self.healthy_streak = 0

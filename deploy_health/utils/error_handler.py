"""重试机制"""

from dataclasses import dataclass
from typing import Optional

from .exceptions import DeployHealthError


@dataclass
class RetryConfig:
    """重试配置

    max_attempts 为总尝试次数（包含首次请求），每次失败后固定等待 delay 秒
    """
    max_attempts: int = 3
    delay: float = 1.0


class RetryHandler:
    """重试处理器"""

    def __init__(self, config: Optional[RetryConfig] = None):
        self.config = config or RetryConfig()

    def should_retry(self, error: Exception, attempt: int) -> bool:
        """判断第 attempt 次尝试失败后是否应该重试"""
        if attempt >= self.config.max_attempts:
            return False

        if isinstance(error, DeployHealthError):
            return error.recoverable

        # 健康探测路径上任何异常都视为可重试
        return True

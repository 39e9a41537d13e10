"""自定义异常类和错误处理系统"""

from enum import Enum
from typing import Optional, Dict, Any
from datetime import datetime


class ErrorCode(Enum):
    """错误代码枚举"""
    # 通用错误 (1000-1999)
    UNKNOWN_ERROR = 1000

    # 配置错误 (2000-2999)
    CONFIG_FILE_NOT_FOUND = 2000
    CONFIG_PARSE_ERROR = 2001
    CONFIG_VALIDATION_ERROR = 2002

    # 健康检查错误 (3000-3999)
    CONNECTION_ERROR = 3001
    TIMEOUT_ERROR = 3002

    # 监控错误 (5000-5999)
    MONITOR_STATE_ERROR = 5000


class DeployHealthError(Exception):
    """部署健康监控基础异常类"""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.UNKNOWN_ERROR,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        recoverable: bool = True
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.cause = cause
        self.recoverable = recoverable
        self.timestamp = datetime.now()

    def to_dict(self) -> Dict[str, Any]:
        """将异常转换为字典格式"""
        return {
            'error_code': self.error_code.value,
            'error_name': self.error_code.name,
            'message': self.message,
            'details': self.details,
            'recoverable': self.recoverable,
            'timestamp': self.timestamp.isoformat(),
            'cause': str(self.cause) if self.cause else None
        }

    def format_error(self) -> str:
        """格式化错误信息"""
        error_msg = f"[{self.error_code.name}] {self.message}"
        if self.details:
            details_str = ", ".join([f"{k}={v}" for k, v in self.details.items()])
            error_msg += f" (详情: {details_str})"
        if self.cause:
            error_msg += f" (原因: {str(self.cause)})"
        return error_msg


class ConfigError(DeployHealthError):
    """配置相关异常"""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.CONFIG_VALIDATION_ERROR,
        config_path: Optional[str] = None,
        **kwargs
    ):
        details = kwargs.pop('details', {})
        if config_path:
            details['config_path'] = config_path
        kwargs.setdefault('recoverable', False)
        super().__init__(message, error_code, details, **kwargs)


class ProbeError(DeployHealthError):
    """探测请求的传输层异常"""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.CONNECTION_ERROR,
        url: Optional[str] = None,
        attempt: Optional[int] = None,
        **kwargs
    ):
        details = kwargs.pop('details', {})
        if url:
            details['url'] = url
        if attempt is not None:
            details['attempt'] = attempt
        super().__init__(message, error_code, details, **kwargs)


class MonitorStateError(DeployHealthError):
    """监控器生命周期使用错误"""

    def __init__(self, message: str, state: Optional[str] = None, **kwargs):
        details = kwargs.pop('details', {})
        if state:
            details['state'] = state
        super().__init__(
            message,
            ErrorCode.MONITOR_STATE_ERROR,
            details,
            recoverable=False,
            **kwargs
        )

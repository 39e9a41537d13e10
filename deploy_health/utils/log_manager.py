"""
日志管理器模块

所有模块的日志记录器都挂在 deploy_health 命名空间下，处理器只装在
命名空间根记录器上：控制台输出到 stdout，配置了 log_file 时再写入轮转的
应用日志文件。健康检查的逐条记录由 services.health_log 单独写入，不经过这里。
"""

import dataclasses
import logging
import logging.handlers
import sys
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Dict, Any

ROOT_LOGGER_NAME = 'deploy_health'

CONSOLE_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'
FILE_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


class LogLevel(Enum):
    """日志级别枚举"""
    DEBUG = logging.DEBUG
    INFO = logging.INFO
    WARNING = logging.WARNING
    ERROR = logging.ERROR
    CRITICAL = logging.CRITICAL

    @classmethod
    def parse(cls, value: Any) -> 'LogLevel':
        name = str(value).upper()
        if name not in cls.__members__:
            raise ValueError(f"无效的日志级别: {name}")
        return cls[name]


@dataclass(frozen=True)
class LogSettings:
    """当前生效的日志配置"""
    level: LogLevel = LogLevel.INFO
    log_file: Optional[str] = None
    max_file_size: int = 10 * 1024 * 1024
    backup_count: int = 5
    enable_console: bool = True
    console_format: str = CONSOLE_FORMAT
    file_format: str = FILE_FORMAT


class LogManager:
    """
    日志管理器，单例

    configure 只替换根记录器上的处理器，已经取得的记录器无需重建。
    """

    _instance: Optional['LogManager'] = None
    _initialized: bool = False

    def __new__(cls) -> 'LogManager':
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if self._initialized:
            return

        self.settings = LogSettings()
        self._loggers: Dict[str, logging.Logger] = {}
        self._root = logging.getLogger(ROOT_LOGGER_NAME)
        self._installed = False

        self._initialized = True

    def configure(self, config: Dict[str, Any]) -> None:
        """
        配置日志系统

        Args:
            config: 日志配置字典，可选键：
                - log_level: DEBUG / INFO / WARNING / ERROR / CRITICAL
                - log_file: 应用日志文件路径，设置后启用文件输出
                - max_file_size: 单个日志文件最大字节数
                - backup_count: 轮转保留的文件数
                - enable_console: 是否输出到控制台
                - console_format / format: 控制台 / 文件日志格式

        Raises:
            ValueError: 日志级别无效
        """
        changes: Dict[str, Any] = {}

        if 'log_level' in config:
            changes['level'] = LogLevel.parse(config['log_level'])
        if config.get('log_file'):
            changes['log_file'] = config['log_file']
        for key in ('max_file_size', 'backup_count', 'enable_console', 'console_format'):
            if key in config:
                changes[key] = config[key]
        if 'format' in config:
            changes['file_format'] = config['format']

        self.settings = dataclasses.replace(self.settings, **changes)
        self._install_handlers()

    def get_logger(self, name: str) -> logging.Logger:
        """
        获取 deploy_health 命名空间下的日志记录器

        Args:
            name: 模块名，如 'monitor'、'checker.prober'
        """
        if not self._installed:
            self._install_handlers()

        if name not in self._loggers:
            self._loggers[name] = self._root.getChild(name)
        return self._loggers[name]

    def _install_handlers(self) -> None:
        self._close_handlers()

        settings = self.settings
        self._root.setLevel(settings.level.value)
        self._root.propagate = False

        if settings.enable_console:
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setFormatter(logging.Formatter(settings.console_format, DATE_FORMAT))
            self._root.addHandler(console_handler)

        if settings.log_file:
            Path(settings.log_file).parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.handlers.RotatingFileHandler(
                settings.log_file,
                maxBytes=settings.max_file_size,
                backupCount=settings.backup_count,
                encoding='utf-8'
            )
            file_handler.setFormatter(logging.Formatter(settings.file_format, DATE_FORMAT))
            self._root.addHandler(file_handler)

        self._installed = True

    def _close_handlers(self) -> None:
        for handler in list(self._root.handlers):
            self._root.removeHandler(handler)
            handler.close()

    def cleanup(self) -> None:
        """关闭处理器并恢复默认配置，下次取记录器时重新安装"""
        self._close_handlers()
        self._loggers.clear()
        self.settings = LogSettings()
        self._installed = False


# 全局日志管理器实例
log_manager = LogManager()


def get_logger(name: str) -> logging.Logger:
    """获取日志记录器的便捷函数"""
    return log_manager.get_logger(name)


def configure_logging(config: Dict[str, Any]) -> None:
    """配置日志系统的便捷函数"""
    log_manager.configure(config)

"""配置验证工具"""

from typing import Dict, Any

from ..models.health_check import normalize_config_keys, validate_health_check_field
from .exceptions import ConfigError

VALID_LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']

HEALTH_CHECK_FIELDS = ('expected_status', 'timeout_ms', 'check_interval_ms')


class ConfigValidator:
    """配置验证器"""

    @staticmethod
    def validate_health_check_config(config: Dict[str, Any],
                                     require_expected_status: bool = True) -> None:
        """
        验证健康检查配置

        Args:
            config: 健康检查配置
            require_expected_status: 是否要求 expected_status 必填；
                环境级的覆盖配置可以只写部分字段

        Raises:
            ConfigError: 配置验证失败
        """
        if not isinstance(config, dict):
            raise ConfigError("health_check 配置必须是字典类型")

        normalized = normalize_config_keys(config)
        for key in normalized:
            if key not in HEALTH_CHECK_FIELDS:
                raise ConfigError(f"health_check 不支持的配置项: {key}")

        if require_expected_status and 'expected_status' not in normalized:
            raise ConfigError("health_check 缺少必需的配置项: expected_status")

        for field in HEALTH_CHECK_FIELDS:
            value = normalized.get(field)
            if value is not None:
                validate_health_check_field(field, value)

    @staticmethod
    def validate_environment_config(name: str, config: Dict[str, Any]) -> None:
        """
        验证部署环境配置

        Args:
            name: 环境名称
            config: 环境配置

        Raises:
            ConfigError: 配置验证失败
        """
        if not isinstance(config, dict):
            raise ConfigError(f"环境 '{name}' 的配置必须是字典类型")

        url = config.get('url')
        if url is not None:
            if not isinstance(url, str) or not url.startswith(('http://', 'https://')):
                raise ConfigError(f"环境 '{name}' 的 url 必须以 http:// 或 https:// 开头")

        if 'health_check' in config:
            ConfigValidator.validate_health_check_config(
                config['health_check'], require_expected_status=False)

    @staticmethod
    def validate_global_config(global_config: Dict[str, Any]) -> None:
        """
        验证全局配置

        Args:
            global_config: 全局配置

        Raises:
            ConfigError: 配置验证失败
        """
        if not isinstance(global_config, dict):
            raise ConfigError("全局配置必须是字典类型")

        log_level = global_config.get('log_level')
        if log_level is not None:
            if log_level not in VALID_LOG_LEVELS:
                raise ConfigError(f"log_level 必须是以下值之一: {VALID_LOG_LEVELS}")

        for field in ('log_dir', 'log_file'):
            value = global_config.get(field)
            if value is not None and not isinstance(value, str):
                raise ConfigError(f"{field} 必须是字符串")

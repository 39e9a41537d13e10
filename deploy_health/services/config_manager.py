"""配置管理器"""

import os
from typing import Dict, Any, Optional

import yaml

from ..models.health_check import HealthCheckConfig, normalize_config_keys
from ..utils.config_validator import ConfigValidator
from ..utils.exceptions import ConfigError, ErrorCode
from ..utils.log_manager import get_logger

DEFAULT_EXPECTED_STATUS = 200


class ConfigManager:
    """配置管理器，负责YAML配置文件的加载、解析和验证"""

    def __init__(self, config_path: Optional[str] = None):
        """
        初始化配置管理器

        Args:
            config_path: 配置文件路径，为 None 时只使用默认值和覆盖项
        """
        self.config_path = config_path
        self.config: Dict[str, Any] = {}
        self.logger = get_logger('config_manager')

    def load_config(self) -> Dict[str, Any]:
        """
        加载YAML配置文件

        Returns:
            Dict[str, Any]: 配置字典

        Raises:
            ConfigError: 配置加载或验证失败
        """
        self.logger.debug(f"开始加载配置文件: {self.config_path}")

        if not os.path.exists(self.config_path):
            raise ConfigError(f"配置文件不存在: {self.config_path}",
                              ErrorCode.CONFIG_FILE_NOT_FOUND,
                              config_path=self.config_path)

        try:
            with open(self.config_path, 'r', encoding='utf-8') as file:
                config = yaml.safe_load(file)
        except yaml.YAMLError as e:
            raise ConfigError(f"YAML格式错误: {e}", ErrorCode.CONFIG_PARSE_ERROR,
                              config_path=self.config_path, cause=e)
        except PermissionError as e:
            raise ConfigError(f"没有权限读取配置文件: {self.config_path}",
                              ErrorCode.CONFIG_FILE_NOT_FOUND,
                              config_path=self.config_path, cause=e)

        if config is None:
            raise ConfigError("配置文件为空", config_path=self.config_path)

        self._validate_config(config)

        environments_count = len(config.get('environments') or {})
        self.logger.debug(f"配置验证成功，包含 {environments_count} 个部署环境")

        self.config = config
        return self.config

    def _validate_config(self, config: Dict[str, Any]) -> None:
        """
        验证配置文件内容

        Args:
            config: 配置字典

        Raises:
            ConfigError: 配置验证失败
        """
        if not isinstance(config, dict):
            raise ConfigError("配置文件根节点必须是字典类型")

        if 'global' in config:
            ConfigValidator.validate_global_config(config['global'])

        if 'health_check' in config:
            ConfigValidator.validate_health_check_config(
                config['health_check'], require_expected_status=False)

        if 'environments' in config:
            if not isinstance(config['environments'], dict):
                raise ConfigError("environments配置必须是字典类型")

            for name, environment in config['environments'].items():
                ConfigValidator.validate_environment_config(name, environment)

    def get_global_config(self) -> Dict[str, Any]:
        """
        获取全局配置

        Returns:
            Dict[str, Any]: 全局配置字典
        """
        return self.config.get('global') or {}

    def get_environment_config(self, environment: str) -> Dict[str, Any]:
        """
        获取指定部署环境的配置

        Raises:
            ConfigError: 环境不存在
        """
        environments = self.config.get('environments') or {}
        if environment not in environments:
            raise ConfigError(f"配置中不存在环境 \"{environment}\"",
                              config_path=self.config_path)
        return environments[environment] or {}

    def get_environment_url(self, environment: str) -> Optional[str]:
        """获取部署环境的探测地址"""
        return self.get_environment_config(environment).get('url')

    def get_health_check_config(self, environment: Optional[str] = None,
                                overrides: Optional[Dict[str, Any]] = None) -> HealthCheckConfig:
        """
        合并得到健康检查配置

        优先级: overrides > 环境级 health_check > 顶层 health_check > 默认值

        Args:
            environment: 部署环境名称
            overrides: 额外覆盖项（如命令行参数），值为 None 的项忽略

        Returns:
            HealthCheckConfig: 健康检查配置

        Raises:
            ConfigError: 环境不存在或合并后的配置无效
        """
        merged: Dict[str, Any] = {'expected_status': DEFAULT_EXPECTED_STATUS}
        merged.update(normalize_config_keys(self.config.get('health_check') or {}))

        if environment:
            environment_config = self.get_environment_config(environment)
            merged.update(normalize_config_keys(environment_config.get('health_check') or {}))

        if overrides:
            merged.update({k: v for k, v in normalize_config_keys(overrides).items()
                           if v is not None})

        ConfigValidator.validate_health_check_config(merged)
        return HealthCheckConfig.from_dict(merged)

"""
配置验证服务
"""
import logging
import os
import re
from typing import Any, Dict

from ..config import AppConfig, TARGET_SOURCES
from .error_handler import ConfigurationError

SNS_ARN_PATTERN = re.compile(r'^arn:aws:sns:[a-z0-9-]+:\d{12}:[a-zA-Z0-9_-]+$')


class ConfigValidator:
    """配置验证器"""

    def __init__(self):
        """初始化配置验证器"""
        self.logger = logging.getLogger(__name__)

    def validate(self, config: AppConfig) -> Dict[str, Any]:
        """
        验证运行配置

        Args:
            config: 运行配置

        Returns:
            Dict[str, Any]: 验证结果，包含is_valid、errors与warnings
        """
        result = {
            'is_valid': True,
            'errors': [],
            'warnings': []
        }

        self._validate_target_source(config, result)
        self._validate_scan_settings(config, result)
        self._validate_alerting(config, result)

        if result['errors']:
            result['is_valid'] = False

        return result

    def ensure_valid(self, config: AppConfig) -> Dict[str, Any]:
        """
        验证配置，无效时抛出异常

        Raises:
            ConfigurationError: 配置无效
        """
        result = self.validate(config)

        for warning in result['warnings']:
            self.logger.warning(f"配置警告: {warning}")

        if not result['is_valid']:
            raise ConfigurationError("; ".join(result['errors']))

        return result

    def _validate_target_source(self, config: AppConfig, result: Dict[str, Any]):
        if config.target_source not in TARGET_SOURCES:
            result['errors'].append(
                f"未知的目标来源: {config.target_source}（可选: {', '.join(TARGET_SOURCES)}）"
            )
        elif config.target_source == 'config' and not config.config_file:
            result['errors'].append("目标来源为config时必须指定配置文件")
        elif config.target_source == 'zone' and not config.hosted_zone_id:
            result['errors'].append("目标来源为zone时必须指定Route53托管区域ID")
        elif config.target_source == 'env' and not os.getenv(config.domains_env_var, '').strip():
            result['errors'].append(f"环境变量 {config.domains_env_var} 为空")

    def _validate_scan_settings(self, config: AppConfig, result: Dict[str, Any]):
        if config.timeout <= 0:
            result['errors'].append(f"超时时间必须为正数: {config.timeout}")
        elif config.timeout > 60:
            result['warnings'].append(f"超时时间过长: {config.timeout}秒")

        if config.split < 1:
            result['errors'].append(f"每批域名数量必须至少为1: {config.split}")

        invalid_ports = [port for port in config.ports if not 1 <= port <= 65535]
        if invalid_ports:
            result['errors'].append(f"端口超出范围: {invalid_ports}")

        if config.alert_days < 0:
            result['warnings'].append(f"告警天数为负数，只会对已过期证书告警: {config.alert_days}")

        if config.ca_bundle and not os.path.isfile(config.ca_bundle):
            result['errors'].append(f"CA证书包不存在: {config.ca_bundle}")

    def _validate_alerting(self, config: AppConfig, result: Dict[str, Any]):
        if config.sns_topic_arn and not SNS_ARN_PATTERN.match(config.sns_topic_arn):
            result['errors'].append(f"SNS主题ARN格式无效: {config.sns_topic_arn}")

        if config.slack_webhook and not config.slack_webhook.startswith('https://'):
            result['errors'].append("Slack Webhook地址必须使用https")

        if not config.sns_topic_arn and not config.slack_webhook:
            result['warnings'].append("未配置任何告警通道")

    def get_configuration_summary(self, config: AppConfig) -> str:
        """
        获取配置摘要

        Returns:
            str: 配置摘要文本
        """
        validation_result = self.validate(config)

        lines = [
            "配置验证摘要",
            "=" * 30,
            "✅ 配置验证通过" if validation_result['is_valid'] else "❌ 配置验证失败"
        ]

        if validation_result['errors']:
            lines.append("\n错误:")
            for error in validation_result['errors']:
                lines.append(f"  • {error}")

        if validation_result['warnings']:
            lines.append("\n警告:")
            for warning in validation_result['warnings']:
                lines.append(f"  • {warning}")

        return "\n".join(lines)

"""
运行配置
"""
import os
from dataclasses import dataclass, field
from typing import List, Mapping, Optional

from .services.error_handler import ConfigurationError

ENV_PREFIX = "SSL_"

DEFAULT_PORTS = [443, 5091, 5061]
DEFAULT_TIMEOUT = 5.0
DEFAULT_SPLIT = 30
DEFAULT_ALERT_DAYS = 5

TARGET_SOURCES = ('config', 'env', 'zone')


@dataclass
class AppConfig:
    """监控运行配置"""
    target_source: str = 'config'
    config_file: str = ''
    domains_env_var: str = 'DOMAINS'
    hosted_zone_id: str = ''
    ports: List[int] = field(default_factory=list)
    timeout: float = DEFAULT_TIMEOUT
    split: int = DEFAULT_SPLIT
    alert_days: int = DEFAULT_ALERT_DAYS
    output_file: str = ''
    ca_bundle: Optional[str] = None
    sns_topic_arn: str = ''
    slack_webhook: str = ''
    log_level: str = 'INFO'

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "AppConfig":
        """
        从环境变量加载配置

        Args:
            environ: 环境变量映射，默认为os.environ

        Returns:
            AppConfig: 配置对象

        Raises:
            ConfigurationError: 数值型变量格式无效
        """
        env = os.environ if environ is None else environ

        def get(name: str, default: str = '') -> str:
            return env.get(ENV_PREFIX + name, default).strip()

        return cls(
            target_source=get('TYPE', 'config') or 'config',
            config_file=get('CONFIG'),
            domains_env_var=get('DOMAINS_VAR', 'DOMAINS') or 'DOMAINS',
            hosted_zone_id=get('HOSTED_ZONE_ID'),
            ports=parse_ports(get('PORTS')),
            timeout=_to_number(get('TIMEOUT'), DEFAULT_TIMEOUT, float, 'SSL_TIMEOUT'),
            split=_to_number(get('SPLIT'), DEFAULT_SPLIT, int, 'SSL_SPLIT'),
            alert_days=_to_number(get('ALERTDAYS'), DEFAULT_ALERT_DAYS, int, 'SSL_ALERTDAYS'),
            output_file=get('OUTPUTFILE'),
            ca_bundle=get('CA_BUNDLE') or None,
            sns_topic_arn=env.get('SNS_TOPIC_ARN', '').strip(),
            slack_webhook=get('SLACK_WEBHOOK'),
            log_level=env.get('LOG_LEVEL', 'INFO').strip() or 'INFO',
        )

    def to_log_dict(self) -> dict:
        """用于日志记录的配置字典"""
        return {
            'target_source': self.target_source,
            'config_file': self.config_file,
            'hosted_zone_id': self.hosted_zone_id,
            'ports': self.ports,
            'timeout': self.timeout,
            'split': self.split,
            'alert_days': self.alert_days,
            'output_file': self.output_file,
            'ca_bundle': self.ca_bundle or 'certifi',
            'sns_topic_arn': self.sns_topic_arn,
            'slack_webhook': self.slack_webhook,
            'log_level': self.log_level,
        }


def _to_number(value: str, default, cast, name: str):
    if not value:
        return default
    try:
        return cast(value.rstrip('s') if cast is float else value)
    except ValueError:
        raise ConfigurationError(f"{name} 格式无效: {value}") from None


def parse_ports(port_string: str) -> List[int]:
    """
    解析逗号分隔的端口列表

    Args:
        port_string: 如 "80, 443"

    Returns:
        List[int]: 端口列表，空字符串返回空列表

    Raises:
        ConfigurationError: 存在非数字或空的端口项
    """
    if not port_string:
        return []

    ports = []
    for part in port_string.split(','):
        try:
            ports.append(int(part.strip()))
        except ValueError:
            raise ConfigurationError(f"invalid port value: {part}") from None
    return ports


def merge_ports(config_ports: List[int], cli_ports: List[int]) -> List[int]:
    """合并两个端口列表，去重并排序"""
    return sorted(set(config_ports) | set(cli_ports))

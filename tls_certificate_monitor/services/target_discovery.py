"""
扫描目标发现服务
"""
import ipaddress
import json
import logging
import os
import re
from typing import Callable, Dict, List

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ..config import AppConfig, merge_ports
from ..interfaces import TargetProvider
from ..models import TargetConfig
from .error_handler import ConfigurationError, DiscoveryError

logger = logging.getLogger(__name__)

# 域名格式验证正则表达式
DOMAIN_PATTERN = re.compile(
    r'^(?:[a-zA-Z0-9_](?:[a-zA-Z0-9_-]{0,61}[a-zA-Z0-9])?\.)+[a-zA-Z]{2,}$'
)


def clean_domain(domain: str) -> str:
    """
    清理域名格式

    Args:
        domain: 原始域名

    Returns:
        str: 去除协议前缀、路径和结尾点号后的小写域名
    """
    if not domain:
        return ""

    domain = domain.strip()
    if domain.startswith('https://'):
        domain = domain[8:]
    elif domain.startswith('http://'):
        domain = domain[7:]

    if '/' in domain:
        domain = domain.split('/')[0]

    return domain.rstrip('.').lower()


def validate_domain(domain: str) -> bool:
    """
    验证域名或IP地址格式

    Args:
        domain: 要验证的域名

    Returns:
        bool: 是否有效
    """
    if not domain or not isinstance(domain, str) or len(domain) > 253:
        return False

    try:
        ipaddress.ip_address(domain)
        return True
    except ValueError:
        pass

    return bool(DOMAIN_PATTERN.match(domain))


def expand_cidr(cidr: str) -> List[str]:
    """
    将CIDR展开为主机地址列表

    Args:
        cidr: 如 "10.0.0.0/30"

    Returns:
        List[str]: 主机地址列表（/32 与 /128 返回单个地址）

    Raises:
        ConfigurationError: CIDR格式无效
    """
    try:
        network = ipaddress.ip_network(cidr.strip(), strict=False)
    except ValueError as e:
        raise ConfigurationError(f"failed to parse CIDR: {e}") from e

    if network.num_addresses == 1:
        return [str(network.network_address)]
    return [str(address) for address in network.hosts()]


def _parse_target_document(data: dict, source: str) -> TargetConfig:
    if not isinstance(data, dict):
        raise DiscoveryError(f"{source} 内容必须是JSON对象")

    try:
        target_config = TargetConfig(
            domains=[str(domain) for domain in data.get('domains') or []],
            ports=[int(port) for port in data.get('ports') or []],
            cidr=[str(block) for block in data.get('cidr') or []],
        )
    except (TypeError, ValueError) as e:
        raise DiscoveryError(f"{source} 格式无效: {e}") from e

    if not target_config.domains and not target_config.cidr:
        raise DiscoveryError("invalid config: missing required domains or cidr")

    return target_config


class FileProvider:
    """本地JSON配置文件"""

    name = "config"

    def __init__(self, path: str):
        self.path = path

    def fetch_targets(self) -> TargetConfig:
        """
        读取配置文件 {"domains": [...], "ports": [...], "cidr": [...]}

        Raises:
            DiscoveryError: 文件无法读取或格式无效
        """
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except OSError as e:
            raise DiscoveryError(f"failed to read config file: {e}") from e
        except json.JSONDecodeError as e:
            raise DiscoveryError(f"failed to parse config file: {e}") from e

        return _parse_target_document(data, self.path)


class EnvironmentProvider:
    """环境变量中的逗号分隔域名列表"""

    name = "env"

    def __init__(self, env_var_name: str = "DOMAINS"):
        self.env_var_name = env_var_name

    def fetch_targets(self) -> TargetConfig:
        domains_str = os.getenv(self.env_var_name, "")

        valid_domains = []
        for raw in domains_str.split(','):
            if not raw.strip():
                continue
            domain = clean_domain(raw)
            if validate_domain(domain):
                valid_domains.append(domain)
            else:
                logger.warning(f"跳过无效域名: {raw.strip()}")

        if not valid_domains:
            raise DiscoveryError(f"环境变量 {self.env_var_name} 中没有有效的域名")

        logger.info(f"从环境变量 {self.env_var_name} 加载了 {len(valid_domains)} 个域名")
        return TargetConfig(domains=valid_domains)


class Route53Provider:
    """AWS Route53托管区域中的A与CNAME记录"""

    name = "zone"
    RECORD_TYPES = ('A', 'CNAME')

    def __init__(self, hosted_zone_id: str, client=None):
        self.hosted_zone_id = hosted_zone_id
        self.client = client

    def fetch_targets(self) -> TargetConfig:
        client = self.client or boto3.client('route53', region_name=os.getenv('AWS_REGION', 'us-east-1'))
        domains = []

        try:
            paginator = client.get_paginator('list_resource_record_sets')
            for page in paginator.paginate(HostedZoneId=self.hosted_zone_id):
                for record in page.get('ResourceRecordSets', []):
                    if record.get('Type') in self.RECORD_TYPES:
                        domains.append(clean_domain(record['Name']))
        except (ClientError, BotoCoreError) as e:
            raise DiscoveryError(f"failed to list resource record sets: {e}") from e

        logger.info(f"从Route53托管区域 {self.hosted_zone_id} 加载了 {len(domains)} 个域名")
        return TargetConfig(domains=domains)


_PROVIDER_FACTORIES: Dict[str, Callable[[AppConfig], TargetProvider]] = {
    'config': lambda config: FileProvider(config.config_file),
    'env': lambda config: EnvironmentProvider(config.domains_env_var),
    'zone': lambda config: Route53Provider(config.hosted_zone_id),
}


def get_provider(config: AppConfig) -> TargetProvider:
    """
    按配置选择目标发现方式

    Raises:
        ConfigurationError: 未知的目标来源
    """
    factory = _PROVIDER_FACTORIES.get(config.target_source)
    if factory is None:
        raise ConfigurationError(f"unknown config type: {config.target_source}")
    return factory(config)


def load_targets(config: AppConfig, default_ports: List[int]) -> TargetConfig:
    """
    获取扫描目标：发现域名、展开CIDR、合并端口

    Args:
        config: 运行配置
        default_ports: 未配置任何端口时使用的端口

    Returns:
        TargetConfig: 域名与端口

    Raises:
        DiscoveryError: 没有找到任何域名
    """
    target_config = get_provider(config).fetch_targets()

    domains = list(target_config.domains)
    for block in target_config.cidr:
        logger.debug(f"展开CIDR {block}")
        domains.extend(expand_cidr(block))

    ports = merge_ports(target_config.ports, config.ports) or list(default_ports)

    if not domains:
        raise DiscoveryError("no domains found to test")

    return TargetConfig(domains=domains, ports=ports)

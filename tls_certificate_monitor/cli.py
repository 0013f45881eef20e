"""
命令行入口
"""
import argparse
import dataclasses
import sys
from typing import List, Optional

from .config import AppConfig, TARGET_SOURCES, parse_ports
from .lambda_handler import TLSCertificateMonitor
from .services.error_handler import ConfigurationError


def build_parser() -> argparse.ArgumentParser:
    """构造命令行参数解析器，未指定的参数沿用环境变量配置"""
    parser = argparse.ArgumentParser(
        prog='tls-cert-monitor',
        description='Concurrent TLS certificate inspection',
        argument_default=argparse.SUPPRESS,
    )
    parser.add_argument('--config', dest='config_file', help='Path to the configuration file')
    parser.add_argument('--type', dest='target_source', choices=TARGET_SOURCES,
                        help='Which target source to use')
    parser.add_argument('--ports', help='Comma-separated list of ports')
    parser.add_argument('--hosted-zone-id', dest='hosted_zone_id', help='Route53 Hosted Zone ID')
    parser.add_argument('--domains-var', dest='domains_env_var',
                        help='Environment variable holding comma-separated domains')
    parser.add_argument('--timeout', type=float, help='Timeout in seconds for each probe')
    parser.add_argument('--split', type=int, help='Number of domains to test per worker')
    parser.add_argument('--alertdays', dest='alert_days', type=int,
                        help='Number of days remaining to trigger alert')
    parser.add_argument('--outputfile', dest='output_file', help='Write output data to the specified file')
    parser.add_argument('--ca-bundle', dest='ca_bundle', help='PEM bundle of trusted roots')
    parser.add_argument('--sns-topic-arn', dest='sns_topic_arn', help='SNS topic ARN for alerts')
    parser.add_argument('--slackwebhook', dest='slack_webhook', help='Slack Webhook URL')
    parser.add_argument('--log-level', dest='log_level', help='Logging level')
    parser.add_argument('--check', action='store_true',
                        help='Validate configuration, trust store and alert channels without scanning')
    return parser


def load_config(argv: Optional[List[str]] = None) -> AppConfig:
    """
    合并环境变量与命令行参数

    Raises:
        ConfigurationError: 参数格式无效
    """
    return _config_from_args(vars(build_parser().parse_args(argv)))


def _config_from_args(args: dict) -> AppConfig:
    args.pop('check', None)

    if 'ports' in args:
        args['ports'] = parse_ports(args['ports'])

    return dataclasses.replace(AppConfig.from_env(), **args)


def main(argv: Optional[List[str]] = None) -> int:
    """
    命令行主函数

    Returns:
        int: 退出码，配置或目标发现失败时为1，--check时系统不健康为1
    """
    args = vars(build_parser().parse_args(argv))
    check_only = args.get('check', False)

    try:
        config = _config_from_args(args)
    except ConfigurationError as e:
        print(f"配置错误: {e}", file=sys.stderr)
        return 1

    monitor = TLSCertificateMonitor(config)

    if check_only:
        return _print_health(monitor.validate_system_health())

    summary = monitor.execute()

    if summary.total_targets == 0 and summary.errors:
        return 1

    return 0


def _print_health(health: dict) -> int:
    print(health['components']['configuration']['details'])
    for issue in health['issues']:
        print(f"  • {issue}")

    return 0 if health['overall_healthy'] else 1


if __name__ == '__main__':
    sys.exit(main())

"""
AWS Lambda函数入口点
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from .config import AppConfig, DEFAULT_PORTS
from .models import ScanResult, ScanSummary
from .services.alerting import dispatch_alerts, get_alert_channels
from .services.config_validator import ConfigValidator
from .services.dispatcher import ScanDispatcher
from .services.error_handler import ConfigurationError, DiscoveryError
from .services.expiry_calculator import ExpiryCalculator
from .services.logger import LoggerService
from .services.output_writer import write_results
from .services.sns_notification import SNSNotificationService
from .services.target_discovery import load_targets
from .services.tls_probe import TLSProbe


class TLSCertificateMonitor:
    """TLS证书监控器主类"""

    def __init__(self, config: Optional[AppConfig] = None):
        """
        初始化监控器

        Args:
            config: 运行配置，默认从环境变量加载
        """
        self.config = config or AppConfig.from_env()

        self.logger_service = LoggerService(log_level=self.config.log_level,
                                            alert_days=self.config.alert_days)
        self.config_validator = ConfigValidator()
        self.dispatcher = ScanDispatcher(prober=TLSProbe(ca_bundle=self.config.ca_bundle))
        self.expiry_calculator = ExpiryCalculator(alert_days=self.config.alert_days)
        self.alert_channels = get_alert_channels(self.config)

        self.logger_service.log_configuration_info(self.config.to_log_dict())

    def execute(self) -> ScanSummary:
        """
        执行TLS证书检查：发现目标、并发扫描、发送告警、写出结果

        Returns:
            ScanSummary: 检查结果
        """
        start_time = datetime.now(timezone.utc)
        # 同一个监控器可以多次执行，每次执行单独统计
        self.logger_service.reset_stats()

        try:
            self.config_validator.ensure_valid(self.config)
            targets = load_targets(self.config, DEFAULT_PORTS)
            # 扫描前加载根证书，加载失败属于配置错误
            self.dispatcher.prober.preload()
        except (ConfigurationError, DiscoveryError) as e:
            self.logger_service.log_error("加载扫描目标", e)
            return self._empty_summary(start_time, [str(e)])

        self.logger_service.log_check_start(len(targets.domains) * len(targets.ports))

        results = self.dispatcher.scan(
            targets.domains,
            targets.ports,
            timeout=self.config.timeout,
            batch_size=self.config.split,
            now=start_time,
        )

        for result in results:
            self.logger_service.log_scan_result(result)

        errors = [f"{result.domain}:{result.port} - {result.error}" for result in results if result.error]

        self._send_alerts(results)
        errors.extend(self._save_output(results, start_time))

        self.logger_service.log_check_end()
        self.logger_service.log_execution_summary()

        error_handler = self.dispatcher.error_handler
        error_stats = error_handler.get_error_statistics(error_handler.handled_errors)
        if error_stats['total_errors']:
            self.logger_service.logger.info(
                f"最常见的探测错误: {error_stats['most_common_error']} "
                f"({error_stats['most_common_error_count']} 次)"
            )

        categorized = self.expiry_calculator.categorize(results)
        self.logger_service.logger.info(self.expiry_calculator.get_expiry_summary(results))

        return ScanSummary(
            total_targets=len(results),
            successful_checks=categorized['successful'],
            failed_checks=categorized['failed'],
            expiring_results=categorized['expiring_soon'],
            expired_results=categorized['expired'],
            errors=errors,
            execution_time=(datetime.now(timezone.utc) - start_time).total_seconds(),
            results=results,
        )

    def _send_alerts(self, results: List[ScanResult]) -> Dict[str, bool]:
        """
        通过已配置的告警通道发送告警

        Args:
            results: 全部扫描结果

        Returns:
            Dict[str, bool]: 各通道发送结果
        """
        if not self.alert_channels:
            self.logger_service.logger.info("未配置告警通道，跳过告警")
            return {}

        alert_count = len(self.expiry_calculator.filter_alerts(results))
        outcomes = dispatch_alerts(self.alert_channels, results, self.config.alert_days)

        for channel, success in outcomes.items():
            self.logger_service.log_notification_sent(channel, alert_count, success)

        return outcomes

    def _save_output(self, results: List[ScanResult], now: datetime) -> List[str]:
        """写出结果文件，返回错误列表"""
        if not self.config.output_file:
            return []

        try:
            write_results(self.config.output_file, results, now=now)
        except OSError as e:
            self.logger_service.log_error("写出扫描结果", e)
            return [f"failed to write output: {e}"]

        return []

    def validate_system_health(self) -> Dict[str, Any]:
        """
        验证系统健康状态：配置、根证书与告警通道

        Returns:
            dict: 系统健康状态信息
        """
        health_status = {
            'overall_healthy': True,
            'components': {},
            'issues': []
        }

        # 检查运行配置
        validation = self.config_validator.validate(self.config)
        health_status['components']['configuration'] = {
            'healthy': validation['is_valid'],
            'details': self.config_validator.get_configuration_summary(self.config)
        }
        if not validation['is_valid']:
            health_status['issues'].extend(validation['errors'])
            health_status['overall_healthy'] = False

        # 检查根证书
        try:
            self.dispatcher.prober.preload()
            health_status['components']['trust_store'] = {'healthy': True}
        except ConfigurationError as e:
            health_status['components']['trust_store'] = {'healthy': False, 'details': str(e)}
            health_status['issues'].append(f"根证书加载失败: {e}")
            health_status['overall_healthy'] = False

        # 检查SNS配置
        for channel in self.alert_channels:
            if not isinstance(channel, SNSNotificationService):
                continue
            sns_config = channel.get_configuration_status()
            health_status['components']['sns_notification'] = {
                'healthy': sns_config['configuration_valid'],
                'details': sns_config
            }
            if not sns_config['configuration_valid']:
                health_status['issues'].append("SNS通知配置无效")
                health_status['overall_healthy'] = False

        return health_status

    def _empty_summary(self, start_time: datetime, errors: List[str]) -> ScanSummary:
        return ScanSummary(
            total_targets=0,
            successful_checks=0,
            failed_checks=0,
            expiring_results=[],
            expired_results=[],
            errors=errors,
            execution_time=(datetime.now(timezone.utc) - start_time).total_seconds(),
        )


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Lambda函数入口点

    Args:
        event: EventBridge触发事件
        context: Lambda运行时上下文

    Returns:
        dict: 执行结果和统计信息
    """
    try:
        monitor = TLSCertificateMonitor()
        result = monitor.execute()
    except (ConfigurationError, ClientError, BotoCoreError) as e:
        return {
            'statusCode': 500,
            'body': {
                'message': 'TLS Certificate Monitor encountered a critical error',
                'error': str(e),
                'timestamp': datetime.now(timezone.utc).isoformat()
            }
        }

    response = {
        'statusCode': 200,
        'body': {
            'message': 'TLS Certificate Monitor executed successfully',
            'summary': {
                'total_targets': result.total_targets,
                'successful_checks': result.successful_checks,
                'failed_checks': result.failed_checks,
                'expired_certificates': len(result.expired_results),
                'expiring_certificates': len(result.expiring_results),
                'execution_time_seconds': result.execution_time,
                'success_rate': (
                    result.successful_checks / result.total_targets
                    if result.total_targets > 0 else 0
                )
            },
            'expired_targets': [f"{r.domain}:{r.port}" for r in result.expired_results],
            'expiring_targets': [f"{r.domain}:{r.port}" for r in result.expiring_results],
            'errors': result.errors[:5],
            'timestamp': datetime.now(timezone.utc).isoformat()
        }
    }

    if result.total_targets == 0 and result.errors:
        response['statusCode'] = 500
        response['body']['message'] = 'TLS Certificate Monitor failed to execute'

    return response

"""
日志服务
"""
import os
import logging
import traceback
from datetime import datetime, timezone
from typing import Dict, Any, Optional

from ..models import ScanResult


class LoggerService:
    """日志服务实现"""

    def __init__(self, logger_name: str = "tls_certificate_monitor", log_level: Optional[str] = None,
                 alert_days: int = 5):
        """
        初始化日志服务

        Args:
            logger_name: 日志器名称，包内各模块的日志器都挂在它下面
            log_level: 日志级别，如果为None则从环境变量读取
            alert_days: 告警阈值天数，用于区分日志级别
        """
        self.logger_name = logger_name
        self.log_level = log_level or os.getenv('LOG_LEVEL', 'INFO')
        self.alert_days = alert_days

        self.logger = logging.getLogger(logger_name)
        self._configure_logger()

        self.execution_stats = self._empty_stats()

    @staticmethod
    def _empty_stats() -> Dict[str, Any]:
        return {
            'start_time': None,
            'end_time': None,
            'total_targets': 0,
            'successful_checks': 0,
            'failed_checks': 0,
            'degraded_chains': 0,
            'errors': []
        }

    def _configure_logger(self):
        """配置日志器"""
        level = getattr(logging, self.log_level.upper(), logging.INFO)
        self.logger.setLevel(level)

        # 避免重复添加处理器
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            handler.setLevel(level)

            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )
            handler.setFormatter(formatter)

            self.logger.addHandler(handler)

        self.logger.propagate = False

    def log_check_start(self, target_count: int):
        """
        记录检查开始

        Args:
            target_count: 要检查的 (域名, 端口) 数量
        """
        self.execution_stats['start_time'] = datetime.now(timezone.utc)
        self.execution_stats['total_targets'] = target_count

        self.logger.info(f"开始TLS证书检查，共 {target_count} 个目标")
        self.logger.info(f"检查开始时间: {self.execution_stats['start_time'].isoformat()}")

    def log_scan_result(self, result: ScanResult):
        """
        记录单条扫描结果

        Args:
            result: 扫描结果
        """
        target = f"{result.domain}:{result.port}"

        if not result.is_successful:
            self.execution_stats['failed_checks'] += 1
            self.execution_stats['errors'].append({
                'domain': target,
                'error_message': result.error,
            })
            self.logger.error(f"证书检查失败 - 目标: {target}, 错误: {result.error}")
            return

        self.execution_stats['successful_checks'] += 1
        details = (
            f"目标: {target}, "
            f"过期时间: {result.not_after.isoformat()}, "
            f"剩余天数: {result.days_until_expiry} 天, "
            f"颁发者: {result.issuer}, "
            f"协议: {result.tls_version} {result.cipher_suite}"
        )

        if not result.chain_ok:
            self.execution_stats['degraded_chains'] += 1
            self.logger.warning(f"证书链异常 - {details}, 链状态: {result.chain_status}")

        if result.is_expired:
            self.logger.warning(f"证书已过期 - {details}")
        elif result.is_expiring_within(self.alert_days):
            self.logger.warning(f"证书即将过期 - {details}")
        else:
            self.logger.info(f"证书正常 - {details}")

    def log_error(self, context: str, error: Exception):
        """
        记录错误信息

        Args:
            context: 出错的环节
            error: 异常对象
        """
        self.execution_stats['errors'].append({
            'domain': context,
            'error_message': f"{type(error).__name__}: {error}",
        })

        self.logger.error(f"{context} 时发生错误: {type(error).__name__}: {str(error)}")
        self.logger.debug(f"{context} 错误堆栈跟踪:\n{traceback.format_exc()}")

    def log_check_end(self):
        """记录检查结束"""
        self.execution_stats['end_time'] = datetime.now(timezone.utc)

        self.logger.info("TLS证书检查完成")
        self.logger.info(
            f"检查统计: 总计 {self.execution_stats['total_targets']} 个目标, "
            f"成功 {self.execution_stats['successful_checks']} 个, "
            f"失败 {self.execution_stats['failed_checks']} 个, "
            f"证书链异常 {self.execution_stats['degraded_chains']} 个"
        )

    def log_notification_sent(self, channel: str, result_count: int, success: bool):
        """
        记录通知发送状态

        Args:
            channel: 通知通道名称（如 "SNS"）
            result_count: 告警结果数量
            success: 是否发送成功
        """
        if success:
            self.logger.info(f"{channel} 通知发送成功，告警条目: {result_count}")
        else:
            self.logger.error(f"{channel} 通知发送失败，告警条目: {result_count}")

    def log_configuration_info(self, config: Dict[str, Any]):
        """
        记录配置信息

        Args:
            config: 配置信息字典
        """
        safe_config = self._sanitize_config(config)

        self.logger.info("系统配置信息:")
        for key, value in safe_config.items():
            self.logger.info(f"  {key}: {value}")

    def _sanitize_config(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """
        清理配置信息中的敏感数据

        Args:
            config: 原始配置

        Returns:
            Dict[str, Any]: 清理后的配置
        """
        safe_config = {}
        for key, value in config.items():
            key_lower = key.lower()

            is_sensitive = (
                key_lower in {'sns_topic_arn', 'slack_webhook', 'key'} or
                key_lower.endswith(('_key', '_secret', '_password', '_token', '_webhook'))
            )

            if is_sensitive and isinstance(value, str) and value:
                if value.startswith('arn:'):
                    parts = value.split(':')
                    if len(parts) >= 6:
                        safe_value = f"{':'.join(parts[:3])}:***:{parts[-2]}:{parts[-1]}"
                    else:
                        safe_value = "***"
                elif '://' in value:
                    # URL只保留协议和主机
                    scheme, rest = value.split('://', 1)
                    safe_value = f"{scheme}://{rest.split('/')[0]}/***"
                else:
                    safe_value = value[:3] + "***" if len(value) > 3 else "***"
                safe_config[key] = safe_value
            else:
                safe_config[key] = value

        return safe_config

    def get_execution_summary(self) -> Dict[str, Any]:
        """
        获取执行摘要

        Returns:
            Dict[str, Any]: 执行摘要信息
        """
        stats = self.execution_stats
        duration = 0
        if stats['start_time'] and stats['end_time']:
            duration = (stats['end_time'] - stats['start_time']).total_seconds()

        return {
            'start_time': stats['start_time'].isoformat() if stats['start_time'] else None,
            'end_time': stats['end_time'].isoformat() if stats['end_time'] else None,
            'duration_seconds': duration,
            'total_targets': stats['total_targets'],
            'successful_checks': stats['successful_checks'],
            'failed_checks': stats['failed_checks'],
            'degraded_chains': stats['degraded_chains'],
            'success_rate': (
                stats['successful_checks'] / stats['total_targets']
                if stats['total_targets'] > 0 else 0
            ),
            'error_count': len(stats['errors']),
            'errors': stats['errors']
        }

    def log_execution_summary(self):
        """记录执行摘要"""
        summary = self.get_execution_summary()

        self.logger.info("=" * 50)
        self.logger.info("执行摘要")
        self.logger.info("=" * 50)
        self.logger.info(f"执行时长: {summary['duration_seconds']:.2f} 秒")
        self.logger.info(f"总目标数: {summary['total_targets']}")
        self.logger.info(f"成功检查: {summary['successful_checks']}")
        self.logger.info(f"失败检查: {summary['failed_checks']}")
        self.logger.info(f"成功率: {summary['success_rate']:.1%}")

        if summary['errors']:
            self.logger.info(f"错误数量: {summary['error_count']}")
            for i, error in enumerate(summary['errors'][:5], 1):
                self.logger.info(f"  错误 {i}: {error['domain']} - {error['error_message']}")

            if len(summary['errors']) > 5:
                self.logger.info(f"  ... 还有 {len(summary['errors']) - 5} 个错误")

        self.logger.info("=" * 50)

    def reset_stats(self):
        """重置执行统计"""
        self.execution_stats = self._empty_stats()

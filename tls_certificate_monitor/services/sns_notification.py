"""
SNS通知服务
"""
import logging
import os
import time
from datetime import datetime, timezone
from typing import List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ..models import ScanResult


class SNSNotificationService:
    """SNS告警通道"""

    name = "SNS"

    def __init__(self, topic_arn: Optional[str] = None, region_name: Optional[str] = None,
                 sns_client=None):
        """
        初始化SNS通知服务

        Args:
            topic_arn: SNS主题ARN，如果为None则从环境变量读取
            region_name: AWS区域名称，如果为None则从ARN或环境变量推断
            sns_client: 已创建的SNS客户端
        """
        self.topic_arn = topic_arn or os.getenv('SNS_TOPIC_ARN')
        self.logger = logging.getLogger(__name__)

        if region_name:
            self.region_name = region_name
        elif self.topic_arn and self.topic_arn.startswith('arn:aws:sns:'):
            # 从SNS ARN中提取区域
            self.region_name = self.topic_arn.split(':')[3]
        else:
            self.region_name = os.getenv('AWS_REGION', 'us-east-1')

        self.sns_client = sns_client
        if self.sns_client is None:
            try:
                self.sns_client = boto3.client('sns', region_name=self.region_name)
            except BotoCoreError as e:
                self.logger.error(f"初始化SNS客户端失败: {str(e)}")

    def send(self, results: List[ScanResult], alert_days: int) -> bool:
        """
        发送需要告警的扫描结果

        Args:
            results: 全部扫描结果
            alert_days: 告警阈值天数

        Returns:
            bool: 发送是否成功（无需告警时返回True）
        """
        alerts = [result for result in results if result.needs_alert(alert_days)]
        if not alerts:
            self.logger.info("没有需要告警的证书，跳过SNS通知")
            return True

        if not self._validate_configuration():
            return False

        subject = self._format_subject(alerts)
        message = self.format_notification_content(alerts, alert_days)

        return self._publish_with_retry(subject, message)

    def _publish_with_retry(self, subject: str, message: str, max_retries: int = 3) -> bool:
        """
        带重试机制的SNS消息发布

        Args:
            subject: 消息主题
            message: 消息内容
            max_retries: 最大重试次数

        Returns:
            bool: 发送是否成功
        """
        for attempt in range(max_retries + 1):
            try:
                response = self.sns_client.publish(
                    TopicArn=self.topic_arn,
                    Subject=subject,
                    Message=message
                )
                self.logger.info(f"SNS通知发送成功，MessageId: {response.get('MessageId')}")
                return True

            except ClientError as e:
                error_code = e.response['Error']['Code']
                error_message = e.response['Error']['Message']

                if self._is_retryable_error(error_code) and attempt < max_retries:
                    wait_time = 2 ** attempt
                    self.logger.warning(
                        f"SNS发送失败 (尝试 {attempt + 1}/{max_retries + 1}) - {error_code}: {error_message}，"
                        f"{wait_time}秒后重试"
                    )
                    time.sleep(wait_time)
                    continue

                self.logger.error(f"SNS发送失败 - {error_code}: {error_message}")
                return False

            except BotoCoreError as e:
                self.logger.error(f"发送SNS通知时发生错误: {str(e)}")
                return False

        return False

    def _is_retryable_error(self, error_code: str) -> bool:
        """
        判断AWS错误是否可重试

        Args:
            error_code: AWS错误代码

        Returns:
            bool: 是否可重试
        """
        return error_code in {'Throttling', 'ServiceUnavailable', 'InternalError', 'RequestTimeout'}

    def format_notification_content(self, alerts: List[ScanResult], alert_days: int) -> str:
        """
        格式化通知内容

        Args:
            alerts: 需要告警的结果
            alert_days: 告警阈值天数

        Returns:
            str: 格式化的通知内容
        """
        if not alerts:
            return "所有TLS证书状态正常。"

        failed = [result for result in alerts if not result.is_successful]
        expired = [result for result in alerts if result.is_expired]
        expiring = [result for result in alerts if result.is_expiring_within(alert_days)]

        lines = [
            "TLS证书过期监控报告",
            "=" * 30,
            f"检查时间: {datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M:%S')} UTC",
            ""
        ]

        if expired:
            lines.extend(["🚨 已过期证书:", ""])
            for result in expired:
                lines.extend(self._format_result(result))
                lines.append(f"  已过期: {abs(result.days_until_expiry)} 天")
                lines.append("")

        if expiring:
            lines.extend([f"⚠️  即将过期证书 ({alert_days}天内):", ""])
            for result in expiring:
                lines.extend(self._format_result(result))
                lines.append(f"  剩余天数: {result.days_until_expiry} 天")
                lines.append("")

        if failed:
            lines.extend(["❌ 检查失败的目标:", ""])
            for result in failed:
                lines.append(f"• {result.domain}:{result.port}")
                lines.append(f"  错误: {result.error}")
                lines.append("")

        lines.append("此消息由TLS证书监控系统自动发送。")

        return "\n".join(lines)

    def _format_result(self, result: ScanResult) -> List[str]:
        return [
            f"• {result.domain}:{result.port} ({result.common_name})",
            f"  过期时间: {result.not_after.strftime('%Y-%m-%d %H:%M:%S')}",
            f"  颁发者: {result.issuer}",
            f"  证书链: {result.chain_status}",
        ]

    def _format_subject(self, alerts: List[ScanResult]) -> str:
        """
        格式化邮件主题

        Args:
            alerts: 需要告警的结果

        Returns:
            str: 邮件主题
        """
        expired_count = len([result for result in alerts if result.is_expired])
        failed_count = len([result for result in alerts if not result.is_successful])
        expiring_count = len(alerts) - expired_count - failed_count

        if expired_count > 0:
            return f"🚨 TLS证书警报: {expired_count}个已过期, {expiring_count}个即将过期, {failed_count}个检查失败"
        elif expiring_count > 0:
            return f"⚠️ TLS证书提醒: {expiring_count}个即将过期, {failed_count}个检查失败"
        else:
            return f"❌ TLS证书检查失败: {failed_count}个目标"

    def _validate_configuration(self) -> bool:
        """
        验证配置是否正确

        Returns:
            bool: 配置是否有效
        """
        if not self.sns_client:
            self.logger.error("SNS客户端未初始化")
            return False

        if not self.topic_arn:
            self.logger.error("SNS主题ARN未配置")
            return False

        return True

    def get_configuration_status(self) -> dict:
        """
        获取配置状态

        Returns:
            dict: 配置状态信息
        """
        return {
            'sns_client_initialized': self.sns_client is not None,
            'topic_arn_configured': bool(self.topic_arn),
            'topic_arn': self.topic_arn,
            'region_name': self.region_name,
            'configuration_valid': self._validate_configuration()
        }

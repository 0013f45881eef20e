"""
Slack通知服务
"""
import logging
from typing import List

import requests

from ..models import ScanResult


class SlackNotificationService:
    """Slack Webhook告警通道"""

    name = "Slack"

    def __init__(self, webhook_url: str, timeout: float = 10.0):
        """
        初始化Slack通知服务

        Args:
            webhook_url: Slack Incoming Webhook地址
            timeout: HTTP请求超时时间（秒）
        """
        self.webhook_url = webhook_url
        self.timeout = timeout
        self.logger = logging.getLogger(__name__)

    def build_payload(self, alerts: List[ScanResult], alert_days: int) -> dict:
        """
        构造Slack消息

        Args:
            alerts: 需要告警的结果
            alert_days: 告警阈值天数

        Returns:
            dict: Slack消息体
        """
        attachments = []
        for result in alerts:
            color = "warning"
            status = f"Expiring in {result.days_until_expiry} days"

            if result.error:
                color = "danger"
                status = f"Error: {result.error}"
            elif result.days_until_expiry < 2:
                color = "danger"

            attachments.append({
                'color': color,
                'title': f"{result.domain} (Port: {result.port})",
                'text': (
                    f"Common Name: {result.common_name}\n"
                    f"Status: {status}\n"
                    f"Chain: {result.chain_status}"
                ),
                'footer': "TLS Certificate Monitor",
            })

        return {
            'text': f"⚠️ Found {len(alerts)} TLS certificates expiring within {alert_days} days (or errors)",
            'attachments': attachments,
        }

    def send(self, results: List[ScanResult], alert_days: int) -> bool:
        """
        发送需要告警的扫描结果

        Args:
            results: 全部扫描结果
            alert_days: 告警阈值天数

        Returns:
            bool: 发送是否成功（无需告警时返回True）
        """
        if not self.webhook_url:
            return True

        alerts = [result for result in results if result.needs_alert(alert_days)]
        if not alerts:
            self.logger.info("没有需要告警的证书，跳过Slack通知")
            return True

        try:
            response = requests.post(self.webhook_url, json=self.build_payload(alerts, alert_days),
                                     timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            self.logger.error(f"Slack通知发送失败: {str(e)}")
            return False

        self.logger.info(f"Slack通知发送成功，告警条目: {len(alerts)}")
        return True

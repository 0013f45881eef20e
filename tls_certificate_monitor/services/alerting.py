"""
告警通道选择与分发
"""
import logging
from typing import Dict, List

from ..config import AppConfig
from ..interfaces import AlertChannel
from ..models import ScanResult
from .slack_notification import SlackNotificationService
from .sns_notification import SNSNotificationService

logger = logging.getLogger(__name__)


def get_alert_channels(config: AppConfig) -> List[AlertChannel]:
    """
    返回已配置的告警通道

    Args:
        config: 运行配置

    Returns:
        List[AlertChannel]: 告警通道列表，可能为空
    """
    channels: List[AlertChannel] = []

    if config.sns_topic_arn:
        channels.append(SNSNotificationService(topic_arn=config.sns_topic_arn))
    if config.slack_webhook:
        channels.append(SlackNotificationService(config.slack_webhook))

    return channels


def dispatch_alerts(channels: List[AlertChannel], results: List[ScanResult],
                    alert_days: int) -> Dict[str, bool]:
    """
    依次通过每个通道发送告警，单个通道失败不影响其他通道

    Returns:
        Dict[str, bool]: 通道名称 -> 是否成功
    """
    outcomes = {}
    for channel in channels:
        try:
            outcomes[channel.name] = channel.send(results, alert_days)
        except Exception as e:
            logger.error(f"{channel.name} 告警发送时发生错误: {str(e)}")
            outcomes[channel.name] = False
    return outcomes

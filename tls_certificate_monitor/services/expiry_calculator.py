"""
证书过期计算服务
"""
import math
from datetime import datetime
from typing import List

from ..models import ScanResult


def days_until_expiry(not_after: datetime, now: datetime) -> int:
    """
    计算距离过期的天数

    按小时数除以24向下取整，保留符号（负数表示已过期）。

    Args:
        not_after: 证书过期时间
        now: 参考时间

    Returns:
        int: 剩余天数
    """
    hours = (not_after - now).total_seconds() / 3600
    return math.floor(hours / 24)


class ExpiryCalculator:
    """证书过期计算器"""

    def __init__(self, alert_days: int = 5):
        """
        初始化过期计算器

        Args:
            alert_days: 提前告警天数
        """
        self.alert_days = alert_days

    def filter_expiring(self, results: List[ScanResult]) -> List[ScanResult]:
        """
        筛选即将过期的证书（告警期内且未过期）

        Args:
            results: 扫描结果列表

        Returns:
            List[ScanResult]: 即将过期的结果列表
        """
        return [result for result in results if result.is_expiring_within(self.alert_days)]

    def filter_expired(self, results: List[ScanResult]) -> List[ScanResult]:
        """筛选已过期的证书"""
        return [result for result in results if result.is_expired]

    def filter_alerts(self, results: List[ScanResult]) -> List[ScanResult]:
        """筛选需要告警的结果（探测失败或剩余天数不超过阈值）"""
        return [result for result in results if result.needs_alert(self.alert_days)]

    def categorize(self, results: List[ScanResult]) -> dict:
        """
        对扫描结果进行分类

        Args:
            results: 扫描结果列表

        Returns:
            dict: 分类结果
        """
        successful = [result for result in results if result.is_successful]
        expired = self.filter_expired(successful)
        expiring = self.filter_expiring(successful)

        return {
            'total': len(results),
            'successful': len(successful),
            'failed': len(results) - len(successful),
            'expired': expired,
            'expiring_soon': expiring,
            'degraded_chain': [result for result in successful if not result.chain_ok],
            'healthy': [result for result in successful
                        if result not in expired and result not in expiring]
        }

    def get_expiry_summary(self, results: List[ScanResult]) -> str:
        """
        获取过期状态摘要

        Args:
            results: 扫描结果列表

        Returns:
            str: 摘要信息
        """
        categorized = self.categorize(results)

        summary_parts = [
            f"总计: {categorized['total']} 个目标",
            f"成功: {categorized['successful']} 个",
            f"失败: {categorized['failed']} 个"
        ]

        if categorized['expired']:
            summary_parts.append(f"已过期: {len(categorized['expired'])} 个")

        if categorized['expiring_soon']:
            summary_parts.append(f"即将过期({self.alert_days}天内): {len(categorized['expiring_soon'])} 个")

        if categorized['degraded_chain']:
            summary_parts.append(f"证书链异常: {len(categorized['degraded_chain'])} 个")

        if categorized['healthy']:
            summary_parts.append(f"健康: {len(categorized['healthy'])} 个")

        return ", ".join(summary_parts)

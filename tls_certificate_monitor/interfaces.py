"""
服务接口定义
"""
from typing import List, Protocol

from .models import ScanResult, TargetConfig


class TargetProvider(Protocol):
    """目标发现接口"""

    name: str

    def fetch_targets(self) -> TargetConfig:
        """获取扫描目标"""
        ...


class AlertChannel(Protocol):
    """告警通道接口"""

    name: str

    def send(self, results: List[ScanResult], alert_days: int) -> bool:
        """发送需要告警的结果，返回是否成功"""
        ...

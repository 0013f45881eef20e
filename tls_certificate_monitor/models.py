"""
数据模型定义
"""
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Optional, List, Tuple


# 探测失败时的过期天数哨兵值，保证失败记录不会触发"即将过期"告警
EXPIRY_SENTINEL = 999999


@dataclass(frozen=True)
class ProbeTarget:
    """探测目标"""
    host: str
    port: int

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"


@dataclass(frozen=True)
class CertificateFacts:
    """一次成功握手提取到的证书与会话信息"""
    tls_version: str
    cipher_suite: str
    compliant: bool
    not_before: datetime
    not_after: datetime
    common_name: str
    serial: str
    issuer: str
    signature_algorithm: str
    sans: Tuple[str, ...]
    chain_status: str


@dataclass(frozen=True)
class ScanResult:
    """单个 (域名, 端口) 的扫描结果"""
    domain: str
    port: int
    days_until_expiry: int
    tls_version: str = ""
    cipher_suite: str = ""
    compliant: bool = False
    chain_status: str = ""
    issuer: str = ""
    signature_algorithm: str = ""
    sans: Tuple[str, ...] = field(default_factory=tuple)
    serial: str = ""
    common_name: str = ""
    not_before: Optional[datetime] = None
    not_after: Optional[datetime] = None
    error: Optional[str] = None

    @classmethod
    def from_facts(cls, target: ProbeTarget, facts: CertificateFacts, days_until_expiry: int) -> "ScanResult":
        """由证书信息构造成功结果"""
        return cls(
            domain=target.host,
            port=target.port,
            days_until_expiry=days_until_expiry,
            tls_version=facts.tls_version,
            cipher_suite=facts.cipher_suite,
            compliant=facts.compliant,
            chain_status=facts.chain_status,
            issuer=facts.issuer,
            signature_algorithm=facts.signature_algorithm,
            sans=facts.sans,
            serial=facts.serial,
            common_name=facts.common_name,
            not_before=facts.not_before,
            not_after=facts.not_after,
        )

    @classmethod
    def from_error(cls, target: ProbeTarget, error: Exception) -> "ScanResult":
        """由探测错误构造失败结果"""
        return cls(
            domain=target.host,
            port=target.port,
            days_until_expiry=EXPIRY_SENTINEL,
            error=str(error) or type(error).__name__,
        )

    @property
    def target(self) -> ProbeTarget:
        return ProbeTarget(self.domain, self.port)

    @property
    def is_successful(self) -> bool:
        """探测是否成功"""
        return not self.error

    @property
    def is_expired(self) -> bool:
        """判断是否已过期"""
        return self.is_successful and self.days_until_expiry < 0

    @property
    def chain_ok(self) -> bool:
        return self.chain_status == "OK"

    def is_expiring_within(self, days: int) -> bool:
        """判断是否在指定天数内过期（不含已过期）"""
        return self.is_successful and 0 <= self.days_until_expiry <= days

    def needs_alert(self, alert_days: int) -> bool:
        """有错误或剩余天数不超过阈值时需要告警"""
        return bool(self.error) or self.days_until_expiry <= alert_days

    def to_dict(self) -> dict:
        """转换为可JSON序列化的字典"""
        data = asdict(self)
        data['sans'] = list(self.sans)
        data['not_before'] = self.not_before.isoformat() if self.not_before else None
        data['not_after'] = self.not_after.isoformat() if self.not_after else None
        return data


@dataclass
class TargetConfig:
    """目标发现结果：域名、端口与CIDR"""
    domains: List[str] = field(default_factory=list)
    ports: List[int] = field(default_factory=list)
    cidr: List[str] = field(default_factory=list)


@dataclass
class ScanSummary:
    """扫描结果统计"""
    total_targets: int
    successful_checks: int
    failed_checks: int
    expiring_results: List[ScanResult]
    expired_results: List[ScanResult]
    errors: List[str]
    execution_time: float
    results: List[ScanResult] = field(default_factory=list)

"""
证书过期计算器测试
"""
from datetime import datetime, timezone, timedelta

from tls_certificate_monitor.models import EXPIRY_SENTINEL, ScanResult
from tls_certificate_monitor.services.expiry_calculator import ExpiryCalculator, days_until_expiry


NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def make_result(domain, days, chain_status="OK", error=None):
    return ScanResult(
        domain=domain,
        port=443,
        days_until_expiry=EXPIRY_SENTINEL if error else days,
        chain_status="" if error else chain_status,
        not_after=None if error else NOW + timedelta(days=days),
        error=error,
    )


class TestDaysUntilExpiry:
    """剩余天数计算测试类"""

    def test_whole_days(self):
        """测试整天数"""
        assert days_until_expiry(NOW + timedelta(hours=72), NOW) == 3

    def test_rounds_down(self):
        """测试向下取整"""
        assert days_until_expiry(NOW + timedelta(hours=23, minutes=59), NOW) == 0

    def test_negative_rounds_down(self):
        """测试已过期时向负方向取整"""
        assert days_until_expiry(NOW - timedelta(hours=1), NOW) == -1
        assert days_until_expiry(NOW - timedelta(days=5), NOW) == -5


class TestExpiryCalculator:
    """证书过期计算器测试类"""

    def setup_method(self):
        """测试前准备"""
        self.calculator = ExpiryCalculator(alert_days=5)
        self.results = [
            make_result("healthy.com", 60),
            make_result("expiring.com", 3),
            make_result("edge.com", 5),
            make_result("expired.com", -2),
            make_result("untrusted.com", 40, chain_status="Untrusted Root / Missing Intermediate"),
            make_result("down.com", 0, error="failed to connect: refused"),
        ]

    def test_filter_expiring(self):
        """测试筛选即将过期证书（含阈值当天，不含已过期）"""
        domains = [result.domain for result in self.calculator.filter_expiring(self.results)]

        assert domains == ["expiring.com", "edge.com"]

    def test_filter_expired(self):
        """测试筛选已过期证书"""
        domains = [result.domain for result in self.calculator.filter_expired(self.results)]

        assert domains == ["expired.com"]

    def test_filter_alerts(self):
        """测试筛选需要告警的结果"""
        domains = [result.domain for result in self.calculator.filter_alerts(self.results)]

        assert domains == ["expiring.com", "edge.com", "expired.com", "down.com"]

    def test_failed_result_never_expiring(self):
        """测试失败结果不会被视为即将过期"""
        failed = make_result("down.com", 0, error="handshake failed")

        assert self.calculator.filter_expiring([failed]) == []
        assert self.calculator.filter_expired([failed]) == []

    def test_categorize(self):
        """测试结果分类"""
        categorized = self.calculator.categorize(self.results)

        assert categorized['total'] == 6
        assert categorized['successful'] == 5
        assert categorized['failed'] == 1
        assert len(categorized['expired']) == 1
        assert len(categorized['expiring_soon']) == 2
        assert [r.domain for r in categorized['degraded_chain']] == ["untrusted.com"]
        assert [r.domain for r in categorized['healthy']] == ["healthy.com", "untrusted.com"]

    def test_get_expiry_summary(self):
        """测试过期状态摘要"""
        summary = self.calculator.get_expiry_summary(self.results)

        assert "总计: 6 个目标" in summary
        assert "成功: 5 个" in summary
        assert "失败: 1 个" in summary
        assert "已过期: 1 个" in summary
        assert "即将过期(5天内): 2 个" in summary
        assert "证书链异常: 1 个" in summary
        assert "健康: 2 个" in summary

    def test_get_expiry_summary_empty(self):
        """测试空结果的摘要"""
        summary = self.calculator.get_expiry_summary([])

        assert summary == "总计: 0 个目标, 成功: 0 个, 失败: 0 个"

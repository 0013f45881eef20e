"""
性能与安全测试
"""
import time
from datetime import timedelta
from unittest.mock import MagicMock

from tls_certificate_monitor.config import AppConfig
from tls_certificate_monitor.services.config_validator import ConfigValidator
from tls_certificate_monitor.services.deadline import Deadline
from tls_certificate_monitor.services.dispatcher import ScanDispatcher
from tls_certificate_monitor.services.error_handler import HandshakeError
from tls_certificate_monitor.services.logger import LoggerService
from tls_certificate_monitor.services.target_discovery import validate_domain

from test_batch_worker import NOW, make_facts


class TestPerformance:
    """性能测试类"""

    def test_batches_run_concurrently(self):
        """测试批次并发执行，总耗时接近单个批次耗时"""
        prober = MagicMock()

        def slow_probe(deadline, host, port, at=None):
            time.sleep(0.2)
            return make_facts(NOW + timedelta(days=10))

        prober.probe.side_effect = slow_probe
        dispatcher = ScanDispatcher(prober=prober, error_handler=MagicMock())
        domains = [f"d{i}.com" for i in range(10)]

        start_time = time.monotonic()
        results = dispatcher.scan(domains, [443], timeout=5, batch_size=2, now=NOW)
        elapsed = time.monotonic() - start_time

        assert len(results) == 10
        # 串行需要2秒，5个批次并发约0.4秒
        assert elapsed < 1.5

    def test_large_domain_list(self):
        """测试大量域名"""
        prober = MagicMock()
        prober.probe.return_value = make_facts(NOW + timedelta(days=10))
        dispatcher = ScanDispatcher(prober=prober, error_handler=MagicMock())
        domains = [f"host{i}.example.com" for i in range(500)]

        results = dispatcher.scan(domains, [443, 8443], timeout=5, batch_size=30, now=NOW)

        assert len(results) == 1000
        assert len({(result.domain, result.port) for result in results}) == 1000

    def test_slow_target_does_not_block_others(self):
        """测试慢目标只影响所在批次"""
        prober = MagicMock()

        def probe(deadline, host, port, at=None):
            if host == "slow.com":
                while not deadline.expired:
                    time.sleep(0.01)
                raise HandshakeError(f"handshake failed: {deadline.reason()}")
            return make_facts(NOW + timedelta(days=10))

        prober.probe.side_effect = probe
        dispatcher = ScanDispatcher(prober=prober, error_handler=MagicMock())

        results = dispatcher.scan(["slow.com", "fast.com"], [443], timeout=0.3, batch_size=1, now=NOW)

        by_domain = {result.domain: result for result in results}
        assert by_domain["slow.com"].error == "handshake failed: context deadline exceeded"
        assert by_domain["fast.com"].error is None

    def test_parent_cancellation_stops_scan(self):
        """测试取消整体扫描后剩余目标立即失败"""
        prober = MagicMock()
        parent = Deadline()
        parent.cancel()

        def probe(deadline, host, port, at=None):
            raise HandshakeError(f"handshake failed: {deadline.reason()}")

        prober.probe.side_effect = probe
        dispatcher = ScanDispatcher(prober=prober, error_handler=MagicMock())

        results = dispatcher.scan(["a.com", "b.com"], [443], timeout=5, batch_size=1, now=NOW, parent=parent)

        assert all(result.error == "handshake failed: context canceled" for result in results)


class TestSecurity:
    """安全测试类"""

    def test_input_validation_domain_names(self):
        """测试恶意域名输入被拒绝"""
        malicious_domains = [
            "example.com; rm -rf /",
            "example.com && cat /etc/passwd",
            "example.com`whoami`",
            "example.com$(id)",
            "../../../etc/passwd",
            "<script>alert(1)</script>.com",
        ]

        for domain in malicious_domains:
            assert validate_domain(domain) is False, f"域名 {domain} 应该被拒绝"

    def test_configuration_is_sanitized(self):
        """测试日志中的配置不包含密钥"""
        logger_service = LoggerService(logger_name="test_tls_security_logger")
        config = AppConfig(
            sns_topic_arn='arn:aws:sns:us-east-1:123456789012:tls-alerts',
            slack_webhook='https://hooks.slack.com/services/T000/B000/SECRET',
        )

        safe = logger_service._sanitize_config(config.to_log_dict())

        assert 'SECRET' not in str(safe)
        assert safe['sns_topic_arn'].startswith('arn:aws:sns:***')

    def test_webhook_requires_https(self):
        """测试Webhook必须使用https"""
        config = AppConfig(config_file='targets.json', slack_webhook='http://hooks.example.com/hook')

        result = ConfigValidator().validate(config)

        assert result['is_valid'] is False

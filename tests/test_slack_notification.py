"""
Slack通知服务测试
"""
from unittest.mock import patch

import requests

from tls_certificate_monitor.models import EXPIRY_SENTINEL, ScanResult
from tls_certificate_monitor.services.slack_notification import SlackNotificationService


WEBHOOK = "https://hooks.slack.com/services/T000/B000/XXXX"


def make_result(domain, days, error=None):
    return ScanResult(
        domain=domain,
        port=443,
        days_until_expiry=EXPIRY_SENTINEL if error else days,
        common_name="" if error else domain,
        chain_status="" if error else "OK",
        error=error,
    )


class TestSlackNotificationService:
    """Slack通知服务测试类"""

    def setup_method(self):
        """测试前准备"""
        self.service = SlackNotificationService(WEBHOOK)

    def test_build_payload(self):
        """测试消息颜色与标题"""
        payload = self.service.build_payload([
            make_result("soon.com", 4),
            make_result("urgent.com", 1),
            make_result("down.com", 0, error="handshake failed: eof"),
        ], 5)

        colors = [attachment['color'] for attachment in payload['attachments']]
        assert colors == ["warning", "danger", "danger"]
        assert payload['attachments'][0]['title'] == "soon.com (Port: 443)"
        assert "Status: Expiring in 4 days" in payload['attachments'][0]['text']
        assert "Status: Error: handshake failed: eof" in payload['attachments'][2]['text']
        assert "Found 3 TLS certificates expiring within 5 days" in payload['text']

    @patch('tls_certificate_monitor.services.slack_notification.requests.post')
    def test_send(self, mock_post):
        """测试发送告警"""
        assert self.service.send([make_result("soon.com", 2), make_result("ok.com", 90)], 5) is True

        mock_post.assert_called_once()
        args, kwargs = mock_post.call_args
        assert args[0] == WEBHOOK
        assert len(kwargs['json']['attachments']) == 1
        assert kwargs['timeout'] == 10.0
        mock_post.return_value.raise_for_status.assert_called_once()

    @patch('tls_certificate_monitor.services.slack_notification.requests.post')
    def test_send_nothing_to_alert(self, mock_post):
        """测试没有需要告警的结果"""
        assert self.service.send([make_result("ok.com", 90)], 5) is True

        mock_post.assert_not_called()

    @patch('tls_certificate_monitor.services.slack_notification.requests.post')
    def test_send_http_error(self, mock_post):
        """测试Webhook返回错误"""
        mock_post.return_value.raise_for_status.side_effect = requests.HTTPError("500 Server Error")

        assert self.service.send([make_result("soon.com", 2)], 5) is False

    @patch('tls_certificate_monitor.services.slack_notification.requests.post')
    def test_send_connection_error(self, mock_post):
        """测试网络错误"""
        mock_post.side_effect = requests.ConnectionError("unreachable")

        assert self.service.send([make_result("soon.com", 2)], 5) is False

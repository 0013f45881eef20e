"""
截止时间令牌测试
"""
import time

from tls_certificate_monitor.services.deadline import Deadline


class TestDeadline:
    """截止时间令牌测试类"""

    def test_no_timeout(self):
        """测试没有截止时间的令牌"""
        deadline = Deadline()

        assert deadline.remaining() is None
        assert deadline.expired is False
        assert deadline.cancelled is False

    def test_remaining_with_timeout(self):
        """测试剩余时间"""
        deadline = Deadline(10)

        assert 0 < deadline.remaining() <= 10
        assert deadline.expired is False

    def test_expiry(self):
        """测试到期"""
        deadline = Deadline(0.01)
        time.sleep(0.05)

        assert deadline.expired is True
        assert deadline.remaining() == 0
        assert deadline.reason() == "context deadline exceeded"

    def test_cancel(self):
        """测试取消"""
        deadline = Deadline(10)
        deadline.cancel()

        assert deadline.cancelled is True
        assert deadline.expired is True
        assert deadline.reason() == "context canceled"

    def test_child_inherits_parent_limit(self):
        """测试子令牌不超过父令牌的截止时间"""
        parent = Deadline(1)
        child = parent.child(100)

        assert child.remaining() <= 1

    def test_parent_cancel_propagates(self):
        """测试父令牌取消传递给子令牌"""
        parent = Deadline()
        child = parent.child(5)

        parent.cancel()

        assert child.cancelled is True
        assert child.reason() == "context canceled"

    def test_child_release_does_not_affect_siblings(self):
        """测试子令牌释放不影响父令牌和兄弟令牌"""
        parent = Deadline()
        sibling = parent.child(5)

        with parent.child(5) as child:
            pass

        assert child.cancelled is True
        assert parent.cancelled is False
        assert sibling.cancelled is False

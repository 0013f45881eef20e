"""
截止时间与取消控制
"""
import threading
import time
from typing import Optional


class Deadline:
    """
    带超时的可取消令牌

    子令牌继承父令牌的截止时间和取消状态，作为上下文管理器使用时
    在退出时释放（取消）自身，不影响父令牌和兄弟令牌。
    """

    def __init__(self, timeout: Optional[float] = None, parent: Optional["Deadline"] = None):
        """
        初始化令牌

        Args:
            timeout: 超时时间（秒），None表示不设超时
            parent: 父令牌
        """
        self.parent = parent
        self._expires_at = time.monotonic() + timeout if timeout is not None else None
        self._cancelled = threading.Event()

    def child(self, timeout: Optional[float] = None) -> "Deadline":
        """派生子令牌"""
        return Deadline(timeout, parent=self)

    def cancel(self) -> None:
        """取消令牌"""
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        if self._cancelled.is_set():
            return True
        return self.parent.cancelled if self.parent else False

    def remaining(self) -> Optional[float]:
        """
        剩余时间

        Returns:
            Optional[float]: 剩余秒数（已取消或已过期为0），None表示没有截止时间
        """
        if self.cancelled:
            return 0.0

        candidates = []
        if self._expires_at is not None:
            candidates.append(max(0.0, self._expires_at - time.monotonic()))
        if self.parent is not None:
            parent_remaining = self.parent.remaining()
            if parent_remaining is not None:
                candidates.append(parent_remaining)

        return min(candidates) if candidates else None

    @property
    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0

    def reason(self) -> str:
        """描述令牌失效原因"""
        return "context canceled" if self.cancelled else "context deadline exceeded"

    def __enter__(self) -> "Deadline":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.cancel()

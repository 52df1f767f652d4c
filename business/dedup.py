"""Slack 事件去重

Slack 在超时未收到响应时会重发同一事件（event_id 相同）。
这里在进程内记录最近处理过的 event_id，每条记录有固定的存活时间，
过期记录通过显式的 sweep() 清理。进程重启后记录丢失，
重启后短时间内可能重复处理，这是可接受的限制。
"""
import threading
import time
from collections import OrderedDict
from typing import Callable, Optional


class EventDeduplicator:
    """带 TTL 的事件 ID 集合

    Args:
        ttl_seconds: 每条记录的存活时间（秒），默认 60
        max_entries: 最多保留的记录数，超出时先清理过期记录，仍超出则淘汰最早的记录
        clock: 时钟函数，返回单调递增的秒数（测试时可注入假时钟）
    """

    def __init__(self, ttl_seconds: float = 60.0, max_entries: int = 10000,
                 clock: Optional[Callable[[], float]] = None):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock or time.monotonic
        # event_id → 过期时刻，按插入顺序排列
        self._expiry: "OrderedDict[str, float]" = OrderedDict()
        self._lock = threading.Lock()

    def seen(self, event_id: str) -> bool:
        """检查并记录事件

        Returns:
            True 表示该事件在存活期内已处理过（应忽略），
            False 表示首次出现（已记录）
        """
        now = self._clock()
        with self._lock:
            expires_at = self._expiry.get(event_id)
            if expires_at is not None and expires_at > now:
                return True
            if expires_at is not None:
                del self._expiry[event_id]

            self._expiry[event_id] = now + self.ttl_seconds
            if len(self._expiry) > self.max_entries:
                self._sweep_locked(now)
                while len(self._expiry) > self.max_entries:
                    self._expiry.popitem(last=False)
            return False

    def sweep(self) -> int:
        """清理所有已过期的记录

        Returns:
            清理的记录数
        """
        with self._lock:
            return self._sweep_locked(self._clock())

    def _sweep_locked(self, now: float) -> int:
        expired = [key for key, expires_at in self._expiry.items()
                   if expires_at <= now]
        for key in expired:
            del self._expiry[key]
        return len(expired)

    def __len__(self) -> int:
        return len(self._expiry)

    def __contains__(self, event_id: str) -> bool:
        expires_at = self._expiry.get(event_id)
        return expires_at is not None and expires_at > self._clock()

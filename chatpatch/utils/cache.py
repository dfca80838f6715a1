# chatpatch/utils/cache.py
"""
带新鲜度窗口的缓存: 每个条目保存 (value, timestamp)，时钟可注入以便测试。
"""

from typing import Any, Callable, Dict, Hashable, Optional, Tuple

from .id_generator import generate_timestamp


class FreshnessCache:
    def __init__(self, ttl_seconds: float = 30.0, clock: Callable[[], float] = generate_timestamp):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[Hashable, Tuple[Any, float]] = {}

    def get(self, key: Hashable) -> Optional[Any]:
        if key in self._entries:
            value, ts = self._entries[key]
            if self._clock() - ts < self.ttl_seconds:
                return value
            del self._entries[key]
        return None

    def put(self, key: Hashable, value: Any) -> None:
        self._entries[key] = (value, self._clock())

    def get_or_compute(self, key: Hashable, compute: Callable[[], Any]) -> Any:
        cached = self.get(key)
        if cached is not None:
            return cached
        value = compute()
        self.put(key, value)
        return value

    def invalidate(self, key: Optional[Hashable] = None) -> None:
        if key is None:
            self._entries.clear()
        else:
            self._entries.pop(key, None)

    def __len__(self) -> int:
        return len(self._entries)

"""
Кэш сводок по кассе, ключ — (start, end).

Изъятие сбрасывает все записи, чей диапазон содержит его дату (пересечение
диапазонов, а не совпадение ключей). Счётчик поколений не даёт положить в кэш
результат чтения, которое шло параллельно с изменением.
"""
import threading
import time
from datetime import date
from typing import Callable, Dict, Generic, Optional, Tuple, TypeVar

from backoffice.core.logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar("T")
Key = Tuple[date, date]


class ReconciliationCache(Generic[T]):
    def __init__(self, ttl_seconds: float = 30, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[Key, Tuple[float, T]] = {}
        self._generation = 0
        self._lock = threading.Lock()

    @property
    def enabled(self) -> bool:
        return self.ttl_seconds > 0

    def generation(self) -> int:
        """Запомнить перед чтением и передать в put()."""
        with self._lock:
            return self._generation

    def get(self, start: date, end: date) -> Optional[T]:
        if not self.enabled:
            return None
        with self._lock:
            item = self._entries.get((start, end))
            if item is None:
                return None
            stored_at, value = item
            if self._clock() - stored_at > self.ttl_seconds:
                del self._entries[(start, end)]
                return None
            return value

    def put(self, start: date, end: date, value: T, generation: int) -> bool:
        if not self.enabled:
            return False
        with self._lock:
            if generation != self._generation:
                # Между чтением и записью было изменение — результат мог устареть
                return False
            now = self._clock()
            self._drop_expired(now)
            self._entries[(start, end)] = (now, value)
            return True

    def invalidate_day(self, day: date) -> int:
        """Удалить все записи, чей диапазон включает day. Возвращает число удалённых."""
        with self._lock:
            self._generation += 1
            stale = [key for key in self._entries if key[0] <= day <= key[1]]
            for key in stale:
                del self._entries[key]
        if stale:
            logger.debug("Сброшено %s сводок по кассе за %s", len(stale), day)
        return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._generation += 1
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _drop_expired(self, now: float) -> None:
        """Вызывать под self._lock."""
        expired = [key for key, (stored_at, _) in self._entries.items() if now - stored_at > self.ttl_seconds]
        for key in expired:
            del self._entries[key]

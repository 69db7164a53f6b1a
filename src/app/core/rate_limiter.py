"""
인메모리 고정 윈도우 요청 제한기

단일 인스턴스 배포를 전제로 한다. 여러 워커/인스턴스 간에는 카운트가 공유되지 않는다.
"""
import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)

CLEANUP_INTERVAL_SECONDS = 5 * 60
EXPIRED_GRACE_SECONDS = 60


@dataclass
class RateLimitRecord:
    count: int
    reset_at: float


class RateLimiter:
    """식별자(+엔드포인트)별 고정 윈도우 카운터"""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._records: Dict[str, RateLimitRecord] = {}
        self._lock = threading.Lock()
        self._last_cleanup = clock()

    @staticmethod
    def _key(identifier: str, endpoint: Optional[str]) -> str:
        return f"{identifier}:{endpoint}" if endpoint else identifier

    def hit(self, identifier: str, limit: int, window_seconds: float, endpoint: Optional[str] = None) -> bool:
        """요청 1회를 기록하고 허용 여부 반환"""
        now = self._clock()
        key = self._key(identifier, endpoint)

        with self._lock:
            if now - self._last_cleanup > CLEANUP_INTERVAL_SECONDS:
                self._cleanup_locked(now)
                self._last_cleanup = now

            record = self._records.get(key)
            if record is None or now > record.reset_at:
                record = RateLimitRecord(count=0, reset_at=now + window_seconds)
                self._records[key] = record

            record.count += 1
            return record.count <= limit

    def status(self, identifier: str, endpoint: Optional[str] = None) -> Optional[Tuple[int, float]]:
        """(현재 카운트, 리셋까지 남은 초) 반환, 기록이 없으면 None"""
        with self._lock:
            record = self._records.get(self._key(identifier, endpoint))
            if record is None:
                return None
            return record.count, max(0.0, record.reset_at - self._clock())

    def cleanup(self) -> int:
        with self._lock:
            return self._cleanup_locked(self._clock())

    def _cleanup_locked(self, now: float) -> int:
        expired = [key for key, record in self._records.items() if now > record.reset_at + EXPIRED_GRACE_SECONDS]
        for key in expired:
            del self._records[key]
        if expired:
            logger.info("[RATE_LIMIT] cleaned up %s expired records", len(expired))
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._records.clear()


# 전역 제한기 인스턴스
rate_limiter = RateLimiter()

"""프로세스 내 레이트 리밋 저장소 (TTL 만료)"""
import asyncio
import time
from typing import Callable, Dict, Optional, Tuple

from application.ports.rate_limit_store import RateLimitStore


class InMemoryRateLimitStore(RateLimitStore):
    """
    단일 인스턴스용 구현. 다중 인스턴스 배포에서는 같은 포트를 구현한
    공유 저장소로 교체한다.

    키는 호출자가 정하는 값(User-Agent 등)이라 무한히 늘어날 수 있으므로
    hit() sweep_every회마다 만료 항목을 한 번에 정리한다.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic, sweep_every: int = 1000):
        self._clock = clock
        self._lock = asyncio.Lock()
        self._windows: Dict[str, Tuple[int, float]] = {}
        self._blocks: Dict[str, float] = {}
        self._sweep_every = max(1, sweep_every)
        self._hits_since_sweep = 0

    def __len__(self) -> int:
        return len(self._windows) + len(self._blocks)

    def _sweep(self, now: float) -> int:
        expired_windows = [k for k, (_, reset_at) in self._windows.items() if reset_at <= now]
        expired_blocks = [k for k, until in self._blocks.items() if until <= now]
        for key in expired_windows:
            del self._windows[key]
        for key in expired_blocks:
            del self._blocks[key]
        self._hits_since_sweep = 0
        return len(expired_windows) + len(expired_blocks)

    async def hit(self, key: str, window_seconds: float) -> Tuple[int, float]:
        async with self._lock:
            now = self._clock()
            self._hits_since_sweep += 1
            if self._hits_since_sweep >= self._sweep_every:
                self._sweep(now)

            count, reset_at = self._windows.get(key, (0, 0.0))
            if reset_at <= now:
                count, reset_at = 0, now + window_seconds
            count += 1
            self._windows[key] = (count, reset_at)
            return count, reset_at

    async def peek(self, key: str) -> Optional[Tuple[int, float]]:
        async with self._lock:
            entry = self._windows.get(key)
            if entry is None or entry[1] <= self._clock():
                return None
            return entry

    async def block(self, key: str, ttl_seconds: float) -> None:
        async with self._lock:
            self._blocks[key] = self._clock() + ttl_seconds

    async def blocked_until(self, key: str) -> Optional[float]:
        async with self._lock:
            until = self._blocks.get(key)
            if until is None:
                return None
            if until <= self._clock():
                del self._blocks[key]
                return None
            return until

    async def unblock(self, key: str) -> None:
        async with self._lock:
            self._blocks.pop(key, None)

    async def purge_expired(self) -> int:
        """만료된 윈도/차단 제거. 제거한 항목 수 반환"""
        async with self._lock:
            return self._sweep(self._clock())

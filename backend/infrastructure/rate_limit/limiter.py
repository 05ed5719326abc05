"""고정 윈도 레이트 리미터"""
from dataclasses import dataclass
from typing import Optional

from loguru import logger

from application.ports.rate_limit_store import RateLimitStore
from infrastructure.logging_config import security_logger


@dataclass
class RateLimitResult:
    success: bool
    limit: int
    remaining: int
    reset_at: float
    total_hits: int


class RateLimiter:
    """
    윈도 안에서 max_requests를 넘으면 윈도 길이만큼 차단한다.
    한도의 suspicious_multiplier배를 넘긴 클라이언트 IP는 suspicious_ttl 동안 차단.
    """

    def __init__(
        self,
        store: RateLimitStore,
        *,
        name: str,
        window_seconds: float,
        max_requests: int,
        suspicious_multiplier: int = 5,
        suspicious_ttl: float = 30 * 60,
    ):
        self.store = store
        self.name = name
        self.window_seconds = window_seconds
        self.max_requests = max_requests
        self.suspicious_multiplier = suspicious_multiplier
        self.suspicious_ttl = suspicious_ttl

    def _key(self, identifier: str) -> str:
        return f"{self.name}:{identifier}"

    @staticmethod
    def _suspicious_key(client_ip: str) -> str:
        return f"suspicious:{client_ip}"

    async def check(self, identifier: str, client_ip: Optional[str] = None) -> RateLimitResult:
        key = self._key(identifier)

        if client_ip:
            until = await self.store.blocked_until(self._suspicious_key(client_ip))
            if until is not None:
                return RateLimitResult(False, self.max_requests, 0, until, self.max_requests + 1)

        # 차단 중에도 카운트는 올려서 반복 남용을 의심 단계로 올린다
        count, reset_at = await self.store.hit(key, self.window_seconds)
        until = await self.store.blocked_until(key)
        if until is None and count <= self.max_requests:
            return RateLimitResult(True, self.max_requests, self.max_requests - count, reset_at, count)

        if until is None:
            await self.store.block(key, self.window_seconds)
            until = reset_at
            logger.warning(f"레이트 리밋 초과: {key} ({count}/{self.max_requests})")

        if client_ip and count > self.max_requests * self.suspicious_multiplier:
            await self.store.block(self._suspicious_key(client_ip), self.suspicious_ttl)
            security_logger.warning(
                f"과도한 요청으로 의심 클라이언트 차단: {client_ip} ({self.name}, {count}회)"
            )
        return RateLimitResult(False, self.max_requests, 0, until, count)

    async def block(self, identifier: str, duration: float = 3600) -> None:
        await self.store.block(self._key(identifier), duration)

    async def unblock(self, identifier: str) -> None:
        await self.store.unblock(self._key(identifier))

    async def status(self, identifier: str) -> Optional[RateLimitResult]:
        """카운트를 올리지 않고 현재 상태 조회"""
        key = self._key(identifier)
        entry = await self.store.peek(key)
        if entry is None:
            return None
        count, reset_at = entry
        blocked = await self.store.blocked_until(key)
        return RateLimitResult(
            success=count <= self.max_requests and blocked is None,
            limit=self.max_requests,
            remaining=max(0, self.max_requests - count),
            reset_at=reset_at,
            total_hits=count,
        )

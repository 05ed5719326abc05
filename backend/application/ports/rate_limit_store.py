"""레이트 리밋 상태 저장소 포트

외부 공유 저장소(Redis 등)로 교체할 수 있도록 TTL 기반 연산만 정의한다.
"""
from abc import ABC, abstractmethod
from typing import Optional, Tuple


class RateLimitStore(ABC):
    @abstractmethod
    async def hit(self, key: str, window_seconds: float) -> Tuple[int, float]:
        """카운터 증가. (현재 윈도 내 카운트, 윈도 만료 시각) 반환"""

    @abstractmethod
    async def peek(self, key: str) -> Optional[Tuple[int, float]]: ...

    @abstractmethod
    async def block(self, key: str, ttl_seconds: float) -> None: ...

    @abstractmethod
    async def blocked_until(self, key: str) -> Optional[float]: ...

    @abstractmethod
    async def unblock(self, key: str) -> None: ...

    @abstractmethod
    async def purge_expired(self) -> int: ...

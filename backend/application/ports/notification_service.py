"""알림 포트 인터페이스"""
from abc import ABC, abstractmethod
from typing import Optional


class NotificationPort(ABC):
    @abstractmethod
    async def send_email(self, to: str, subject: str, text: str,
                         html: Optional[str] = None) -> bool: ...

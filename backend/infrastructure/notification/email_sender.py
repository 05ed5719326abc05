"""HTTP 메일 API 기반 이메일 발송"""
from typing import Optional

import httpx
from loguru import logger

from config import Settings, settings as default_settings
from application.ports.notification_service import NotificationPort
from infrastructure.logging_config import mask_email


class EmailSender(NotificationPort):
    """발송 실패는 로그만 남기고 False를 돌려준다"""

    def __init__(self, config: Settings = default_settings,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_url = config.EMAIL_API_URL
        self.api_key = config.EMAIL_API_KEY
        self.sender = config.EMAIL_FROM
        self.enabled = config.EMAIL_SEND_ENABLED
        self.timeout = config.EMAIL_TIMEOUT
        self._transport = transport

    async def send_email(self, to: str, subject: str, text: str,
                         html: Optional[str] = None) -> bool:
        if not self.enabled or not self.api_key or not self.sender:
            logger.warning(f"이메일 발송 비활성화 또는 미설정: {mask_email(to)} - {subject}")
            return False

        payload = {
            "from": self.sender,
            "to": [to],
            "subject": subject,
            "text": text,
        }
        if html:
            payload["html"] = html

        async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
            try:
                response = await client.post(
                    self.api_url,
                    json=payload,
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json",
                    },
                )
            except httpx.RequestError as e:
                logger.error(f"이메일 발송 요청 오류: {mask_email(to)} - {e}")
                return False

        if response.status_code >= 400:
            logger.error(f"이메일 발송 실패: {response.status_code} {response.text[:200]}")
            return False

        logger.info(f"이메일 발송 성공: {mask_email(to)} - {subject}")
        return True

"""
로깅 설정 (loguru)

- 일반 로그: LOG_FILE (10MB 회전, 30일 보관)
- 보안 감사 로그: SECURITY_LOG_FILE (security_logger로 남긴 레코드만)
"""
import os
from typing import Any

from loguru import logger

from config import Settings

SENSITIVE_KEYS = (
    "password", "token", "apikey", "api_key", "secret", "sign", "signature",
    "authorization", "cookie", "hash", "salt", "content",
)

security_logger = logger.bind(audit="security")


def _is_security_record(record) -> bool:
    return record["extra"].get("audit") == "security"


def setup_logging(config: Settings) -> None:
    """파일 싱크 등록"""
    for path in (config.LOG_FILE, config.SECURITY_LOG_FILE):
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

    logger.add(
        config.LOG_FILE,
        rotation="10 MB",
        retention="30 days",
        level=config.LOG_LEVEL,
    )
    logger.add(
        config.SECURITY_LOG_FILE,
        rotation="10 MB",
        retention="90 days",
        level="INFO",
        filter=_is_security_record,
    )


def mask_email(email: str) -> str:
    if not email or "@" not in email:
        return "[INVALID_EMAIL]"
    username, domain = email.split("@", 1)
    if not username or not domain:
        return "[INVALID_EMAIL]"
    if len(username) > 2:
        username = username[:2] + "*" * (len(username) - 2)
    else:
        username = "*" * len(username)
    return f"{username}@{domain}"


def redact(data: Any) -> Any:
    """로그/감사 기록용 민감 정보 마스킹"""
    if isinstance(data, dict):
        cleaned = {}
        for key, value in data.items():
            lowered = str(key).lower()
            if any(sensitive in lowered for sensitive in SENSITIVE_KEYS):
                cleaned[key] = "[REDACTED]"
            elif "email" in lowered and isinstance(value, str):
                cleaned[key] = mask_email(value)
            else:
                cleaned[key] = redact(value)
        return cleaned
    if isinstance(data, list):
        return [redact(item) for item in data]
    return data

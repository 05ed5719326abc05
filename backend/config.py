"""
구독 스토어 결제 웹훅 서비스 설정
"""
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """애플리케이션 설정"""

    # 앱 기본 설정
    APP_NAME: str = "구독 스토어 결제 웹훅 서비스"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # 서버 설정
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    APP_BASE_URL: str = "http://localhost:3000"

    # 데이터베이스 설정
    DB_URL: str = "sqlite+aiosqlite:///./data/storefront.db"

    # Cryptomus 설정
    CRYPTOMUS_MERCHANT_ID: str = ""
    CRYPTOMUS_PAYMENT_API_KEY: str = ""
    CRYPTOMUS_API_URL: str = "https://api.cryptomus.com"
    CRYPTOMUS_PAYMENT_LIFETIME: int = 7200  # 2시간

    # Weepay 설정
    WEEPAY_MERCHANT_ID: str = ""
    WEEPAY_API_KEY: str = ""
    WEEPAY_SECRET_KEY: str = ""
    WEEPAY_IS_SANDBOX: bool = True
    WEEPAY_BASE_URL: str = "https://api.weepay.co"
    WEEPAY_SANDBOX_URL: str = "https://testapi.weepay.co"

    # Iyzico 설정
    IYZICO_API_KEY: str = ""
    IYZICO_SECRET_KEY: str = ""
    IYZICO_BASE_URL: str = "https://sandbox-api.iyzipay.com"

    # 결제사 API 호출 타임아웃 (초)
    PROVIDER_TIMEOUT: int = 30

    # Webhook 처리 설정
    WEBHOOK_COMMIT_TIMEOUT: float = 10.0  # 트랜잭션 커밋 제한 시간 (초)
    WEBHOOK_RATE_LIMIT_WINDOW: int = 60  # 초
    WEBHOOK_RATE_LIMIT_MAX: int = 100
    RATE_LIMIT_SUSPICIOUS_MULTIPLIER: int = 5
    RATE_LIMIT_SUSPICIOUS_TTL: int = 30 * 60  # 30분

    # 이메일 설정 (HTTP 메일 API)
    EMAIL_API_URL: str = "https://api.resend.com/emails"
    EMAIL_API_KEY: str = ""
    EMAIL_FROM: str = ""
    EMAIL_SEND_ENABLED: bool = True
    EMAIL_TIMEOUT: int = 20

    # CORS 설정
    CORS_ORIGINS: list = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # 로깅 설정
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = "./logs/app.log"
    SECURITY_LOG_FILE: str = "./logs/security.log"

    class Config:
        env_file = ".env.backend"  # 백엔드 전용 환경 변수 파일
        case_sensitive = True
        env_file_encoding = "utf-8"

    @property
    def weepay_url(self) -> str:
        return self.WEEPAY_SANDBOX_URL if self.WEEPAY_IS_SANDBOX else self.WEEPAY_BASE_URL


@lru_cache()
def get_settings() -> Settings:
    """설정 싱글톤 반환"""
    return Settings()


# 설정 인스턴스
settings = get_settings()

"""
데이터베이스 연결 및 세션 관리
"""
import os
import uuid
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker, AsyncEngine
from sqlalchemy.orm import declarative_base

from config import settings

os.makedirs("./data", exist_ok=True)
os.makedirs("./logs", exist_ok=True)

engine = create_async_engine(
    settings.DB_URL,
    echo=settings.DEBUG,
    future=True,
    pool_size=5,
    max_overflow=10,
)


def make_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    """엔진별 세션 팩토리 생성"""
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False
    )


async_session_factory = make_session_factory(engine)

Base = declarative_base()


def generate_id() -> str:
    """문자열 기본 키 생성 (결제사 상관 ID로도 쓰인다)"""
    return uuid.uuid4().hex


async def init_db(bind: AsyncEngine = engine):
    """데이터베이스 초기화"""
    # 모든 모델을 메타데이터에 등록
    import infrastructure.persistence.models  # noqa: F401

    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from leadcms.config import settings


def _engine_options() -> dict:
    if settings.is_sqlite:
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_pre_ping": True,
        "pool_size": settings.DB_POOL_SIZE,
        "max_overflow": settings.DB_POOL_MAX_OVERFLOW,
        "pool_timeout": settings.DB_POOL_TIMEOUT,
    }


engine = create_engine(settings.DATABASE_URL, future=True, **_engine_options())
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)


class Base(DeclarativeBase):
    pass


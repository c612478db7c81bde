from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    database_url: str = "sqlite+aiosqlite:///puzzle_database.db"
    state_grace_period_sec: float = 5.0  # Keep feeds alive this long after the last subscriber leaves
    log_level: str = "INFO"

    class Config:
        env_file = ".env.local"
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    return Settings()


class Base(DeclarativeBase):
    pass


def async_database_url(url: str) -> str:
    """Point plain driver URLs at their asyncio drivers."""
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if url.startswith("sqlite:///"):
        return url.replace("sqlite:///", "sqlite+aiosqlite:///", 1)
    return url


def make_engine(database_url: str) -> AsyncEngine:
    return create_async_engine(async_database_url(database_url), echo=False)


async def init_db(engine: AsyncEngine):
    # Registers PuzzleRow on Base.metadata
    from puzzlemaster import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

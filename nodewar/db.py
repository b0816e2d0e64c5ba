from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from nodewar.load_secrets import database_url
from nodewar.models.schemas import Base

DATABASE_URL = database_url()


def build_engine(url: str = DATABASE_URL) -> AsyncEngine:
    if url.startswith("sqlite"):
        # Writers queue on SQLite's file lock instead of failing immediately.
        return create_async_engine(url, echo=False, connect_args={"timeout": 30})
    return create_async_engine(url, pool_size=20, max_overflow=20)


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        autocommit=False,
        class_=AsyncSession,
        autoflush=True,
        expire_on_commit=False,
        bind=engine,
    )


engine = build_engine()

# Centralized session factory to avoid creating it in router modules.
Session = build_session_factory(engine)


async def init_db(bind: AsyncEngine = engine) -> None:
    """Create all tables (existing tables are skipped)."""
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

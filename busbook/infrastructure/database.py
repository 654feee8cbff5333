from typing import AsyncGenerator, Any, Dict
from sqlalchemy.ext.asyncio import AsyncSession, AsyncEngine, create_async_engine, async_sessionmaker

from busbook.core import get_settings


settings = get_settings()


def build_engine(dsn: str, *, echo: bool = False, pool_size: int = 5) -> AsyncEngine:
    """Create an async engine; SQLite gets its own pool defaults"""
    kwargs: Dict[str, Any] = {"echo": echo, "pool_pre_ping": True}
    if not dsn.startswith("sqlite"):
        kwargs["pool_size"] = pool_size
    return create_async_engine(dsn, **kwargs)


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
        autocommit=False
    )


# Create async engine
engine = build_engine(settings.DB_DSN, echo=settings.DB_ECHO, pool_size=settings.DB_POOL_SIZE)

# Create async session factory
AsyncSessionFactory = build_session_factory(engine)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Dependency to get database session"""
    async with AsyncSessionFactory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

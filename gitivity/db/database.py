from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from gitivity.core.config import settings


def create_engine(database_url: str | None = None) -> AsyncEngine:
    """Create the async engine.

    Pool sizing only applies to server databases; SQLite (used in tests)
    runs on a static pool chosen by the dialect.
    """
    url = database_url or settings.database_url
    kwargs: dict = {"echo": settings.debug}
    if not url.startswith("sqlite"):
        kwargs.update(
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
            pool_timeout=settings.database_pool_timeout,
            pool_pre_ping=True,
        )
    return create_async_engine(url, **kwargs)


def create_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


# =============================================================================
# Process-wide engine & session maker (for FastAPI)
# =============================================================================
engine = create_engine()
async_session_maker = create_session_maker(engine)


async def init_db(db_engine: AsyncEngine | None = None) -> None:
    """Initialize database tables."""
    from gitivity.db.models import Base

    async with (db_engine or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

"""
Portal-local draft store.

Only in-progress drafts (and their not-yet-uploaded attachments) live here.
Submitted applications, payments and cards belong to the remote service.
"""
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from config import settings


def _draft_engine_kwargs() -> dict:
    kwargs: dict = {"echo": settings.debug}
    if settings.is_sqlite:
        # one shared connection so ":memory:" stores survive across sessions
        kwargs["poolclass"] = StaticPool
        kwargs["connect_args"] = {"check_same_thread": False}
    return kwargs


engine = create_async_engine(settings.database_url, **_draft_engine_kwargs())

DraftSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


class Base(DeclarativeBase):
    pass


async def get_db():
    async with DraftSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_db():
    await engine.dispose()

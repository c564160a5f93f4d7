from typing import AsyncIterator

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from orbit.core.config import settings

engine = create_async_engine(settings.DATABASE_URI, pool_pre_ping=True)

SessionLocal = async_sessionmaker(engine, expire_on_commit=False)


def get_session_factory() -> async_sessionmaker:
    """
    Session factory used by request handlers and long-lived feed sockets.
    Overridden in tests to point at a throwaway database.
    """
    return SessionLocal


async def get_db(
    session_factory: async_sessionmaker = Depends(get_session_factory),
) -> AsyncIterator[AsyncSession]:
    async with session_factory() as session:
        yield session

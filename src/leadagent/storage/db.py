"""Async database engine, session factory, and user queries.

Provides a single engine per process with lazy initialization.
All consumers go through get_session() for connection management.
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from leadagent.config import settings
from leadagent.storage.models import Base, User

logger = logging.getLogger(__name__)

_engine = None
_session_factory = None


def _get_engine():
    global _engine
    if _engine is None:
        _engine = create_async_engine(
            settings.database_url,
            echo=False,
            pool_pre_ping=True,
            pool_recycle=300,
        )
    return _engine


async def init_db() -> None:
    """Create all tables if they don't exist."""
    engine = _get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database initialized")


async def get_session() -> AsyncSession:
    """Get an async database session."""
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(_get_engine(), expire_on_commit=False)
    return _session_factory()


async def get_user_by_token(session: AsyncSession, access_token: str) -> User | None:
    result = await session.execute(select(User).where(User.access_token == access_token))
    return result.scalars().first()


async def upsert_user(
    session: AsyncSession,
    *,
    email: str | None,
    name: str,
    access_token: str,
    expires_in: int | None,
) -> User:
    """Create the user for ``email`` or refresh its token, then commit."""
    user = None
    if email:
        result = await session.execute(select(User).where(User.email == email))
        user = result.scalars().first()

    if user is None:
        user = User(
            name=name,
            email=email,
            access_token=access_token,
            expires_in=expires_in,
            permissions=[],
        )
        session.add(user)
        logger.info("Created user %r", name)
    else:
        user.access_token = access_token
        user.expires_in = expires_in
        logger.info("Refreshed access token for user %r", user.name)

    await session.commit()
    return user

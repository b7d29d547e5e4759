"""
Database session management

Provides session management utilities including context managers,
and the session decorator used by the repositories.
"""

import logging
from contextlib import asynccontextmanager
from functools import wraps
from typing import AsyncGenerator
from sqlalchemy.ext.asyncio import AsyncSession
from .base import AsyncSessionLocal

logger = logging.getLogger(__name__)


@asynccontextmanager
async def async_session_scope() -> AsyncGenerator[AsyncSession, None]:
    """
    Asynchronous context manager for automatic async Session management

    Usage:
        async with async_session_scope() as session:
            result = await session.execute(stmt)
    """
    session = AsyncSessionLocal()
    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


def async_with_session(f):
    """
    Asynchronous decorator: Automatically handle async database session management

    The wrapped function receives the session right after ``self``. Callers
    that already hold a session may pass it as ``session=`` to join that
    transaction instead of opening a new one.

    Usage:
        @async_with_session
        async def some_db_function(self, session, param1, param2):
            result = await session.execute(stmt)
            return result.scalars().all()
    """
    @wraps(f)
    async def wrapper(*args, **kwargs):
        outer = kwargs.pop("session", None)
        is_method = bool(args) and hasattr(args[0].__class__, f.__name__)

        def _bind(session):
            if is_method:
                return (args[0], session) + args[1:]
            return (session,) + args

        if outer is not None:
            return await f(*_bind(outer), **kwargs)

        async with async_session_scope() as session:
            try:
                return await f(*_bind(session), **kwargs)
            except Exception as e:
                logger.error(f"Database operation failed in {f.__name__}: {e}")
                raise

    return wrapper

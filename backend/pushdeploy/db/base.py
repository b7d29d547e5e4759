"""
Database base configuration and models

Provides the SQLAlchemy async engine, the session factory and the
declarative base shared by every model.
"""

import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, String, event
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool

from pushdeploy.config.settings import DatabaseConfig

ASYNC_DATABASE_URL = DatabaseConfig.get_async_database_url()


def _engine_options() -> dict:
    if DatabaseConfig.is_sqlite():
        # aiosqlite connections are bound to the loop that opened them
        return {"poolclass": NullPool, "echo": DatabaseConfig.ECHO}
    return {
        "pool_size": DatabaseConfig.POOL_SIZE,
        "max_overflow": DatabaseConfig.MAX_OVERFLOW,
        "pool_pre_ping": True,
        "pool_recycle": DatabaseConfig.POOL_RECYCLE,
        "echo": DatabaseConfig.ECHO,
    }


async_engine = create_async_engine(ASYNC_DATABASE_URL, **_engine_options())


if DatabaseConfig.is_sqlite():
    @event.listens_for(async_engine.sync_engine, "connect")
    def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


AsyncSessionLocal = async_sessionmaker(
    async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False
)

Base = declarative_base()


def new_id() -> str:
    return str(uuid.uuid4())


class BaseModel:
    """
    Base model - provides common fields and methods
    """

    id = Column(String(36), primary_key=True, default=new_id, comment="Primary Key UUID")
    create_time = Column(DateTime, default=datetime.utcnow, nullable=False, comment="Creation Time")
    update_time = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, comment="Update Time")

    def to_dict(self, exclude_fields=None):
        """
        Convert model instance to dictionary

        Args:
            exclude_fields: List of field names to exclude

        Returns:
            Dictionary representation of the model
        """
        exclude_fields = exclude_fields or []
        return {
            c.name: getattr(self, c.name)
            for c in self.__table__.columns
            if c.name not in exclude_fields
        }


async def init_db():
    """Initialize database tables."""
    # Register every model on the metadata
    from pushdeploy.db import models  # noqa: F401

    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def drop_db():
    """Drop all tables. Used by the test suite."""
    from pushdeploy.db import models  # noqa: F401

    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


async def dispose_db():
    """Dispose database engine."""
    await async_engine.dispose()

"""
Database session management and connection handling.
"""
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncGenerator, Dict, Optional, Set

from sqlalchemy import DateTime, Integer, text
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    create_async_engine,
    AsyncSession,
    async_sessionmaker,
    AsyncEngine
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.pool import StaticPool
from sqlalchemy.sql import func


class DatabaseError(Exception):
    """Raised when the database cannot be reached or a query fails."""
    pass


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    def to_dict(self, exclude: Optional[Set[str]] = None) -> Dict[str, Any]:
        """Convert model instance to dictionary."""
        exclude = exclude or set()
        return {
            c.key: getattr(self, c.key)
            for c in sa_inspect(self).mapper.column_attrs
            if c.key not in exclude
        }


class TimestampMixin:
    """Mixin that adds primary key and timestamp fields to models."""
    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=func.now(),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=func.now(),
        onupdate=func.now(),
        nullable=False
    )


class Database:
    """Database connection and session management."""

    def __init__(
        self,
        database_url: Optional[str] = None,
        **kwargs: Any
    ) -> None:
        """Initialize the database connection.

        Args:
            database_url: Database connection URL. If not provided, will use
                         the DATABASE_URL setting.
            **kwargs: Additional keyword arguments passed to create_async_engine.
        """
        from spms.core.config import settings
        self.database_url = database_url or settings.DATABASE_URL
        self.echo_sql = bool(kwargs.pop('echo_sql', False) or settings.ECHO_SQL)
        self.engine: Optional[AsyncEngine] = None
        self.session_factory: Optional[async_sessionmaker[AsyncSession]] = None
        self._logger = logging.getLogger(__name__)

        self._setup_engine(**kwargs)

    def _setup_engine(self, **kwargs: Any) -> None:
        """Set up the SQLAlchemy async engine."""
        if not self.database_url:
            raise ValueError("Database URL is required")

        engine_options: Dict[str, Any] = {
            "echo": self.echo_sql,
            "pool_pre_ping": True,
            **kwargs
        }

        # In-memory SQLite must share one connection or every session sees an empty database
        if self.database_url.startswith("sqlite") and ":memory:" in self.database_url:
            engine_options.update({
                "connect_args": {"check_same_thread": False},
                "poolclass": StaticPool
            })

        self.engine = create_async_engine(self.database_url, **engine_options)
        self.session_factory = async_sessionmaker(
            bind=self.engine,
            expire_on_commit=False,
            class_=AsyncSession
        )
        self._logger.info("Database engine initialized successfully")

    @staticmethod
    def _obfuscate_url(url: str) -> str:
        """Obfuscate sensitive information in database URLs for logging."""
        if not url:
            return ""

        if "@" in url:
            parts = url.split("@", 1)
            auth_part = parts[0].split("//", 1)[-1]
            if ":" in auth_part:
                user_pass = auth_part.split(":", 1)
                obfuscated = f"{user_pass[0]}:****@"
                return url.replace(auth_part + "@", obfuscated)
        return url

    async def create_all(self) -> None:
        """Create every table known to the model metadata."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def health_check(self) -> bool:
        """Check if the database is reachable."""
        if not self.engine:
            return False

        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
                return True
        except Exception as e:
            self._logger.error(f"Database health check failed ({self._obfuscate_url(self.database_url)}): {e}")
            return False

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """Get an async database session with proper cleanup."""
        if not self.session_factory:
            raise DatabaseError("Database session factory not initialized")

        session = self.session_factory()
        try:
            yield session
            await session.commit()
        except SQLAlchemyError as e:
            await session.rollback()
            self._logger.error(f"Database error: {e}")
            raise DatabaseError(f"Database operation failed: {e}") from e
        finally:
            await session.close()

    async def close(self) -> None:
        """Close all database connections."""
        if self.engine:
            await self.engine.dispose()
            self._logger.info("Database connections closed")


__all__ = ["Base", "TimestampMixin", "Database", "DatabaseError"]

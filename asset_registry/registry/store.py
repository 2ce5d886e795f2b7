"""
Registry Store — the shared persistent state of one deployed registry.

Every operation of the Access Controller and the Token Registry runs inside
`RegistryStore.transaction()`. A transaction holds the store's lock for its
whole duration, so calls never interleave, and it either commits everything
it wrote or rolls everything back.

Usage:
    store = RegistryStore("sqlite:///registry.db")
    store.initialize()  # Create tables

    with store.transaction() as session:
        ...
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from asset_registry.errors import ErrorCode, InvalidState
from asset_registry.registry.models import Base

logger = logging.getLogger(__name__)


def _is_memory_sqlite(database_url: str) -> bool:
    return database_url in ("sqlite://", "sqlite:///:memory:") or "mode=memory" in database_url


class RegistryStore:
    """Engine, session factory and serialization lock for one registry."""

    def __init__(self, database_url: str, echo: bool = False) -> None:
        """
        Args:
            database_url: SQLAlchemy connection string (sync driver).
            echo: Log emitted SQL.
        """
        self.database_url = database_url
        if _is_memory_sqlite(database_url):
            # One shared connection, otherwise each session sees an empty database.
            self.engine = create_engine(
                database_url,
                echo=echo,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        else:
            self.engine = create_engine(database_url, echo=echo)
        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False)
        self._lock = threading.RLock()

    @classmethod
    def in_memory(cls) -> RegistryStore:
        """A fresh, initialized in-memory store."""
        store = cls("sqlite://")
        store.initialize()
        return store

    def initialize(self) -> None:
        """Create the schema if it does not exist yet."""
        Base.metadata.create_all(self.engine)
        logger.info("Registry store schema ready: %s", self.engine.url.render_as_string())

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """
        Run one serialized, all-or-nothing unit of work.

        Commits when the block exits normally; rolls back and re-raises on
        any exception. Database errors surface as InvalidState with the
        driver error chained as the cause.
        """
        with self._lock:
            session = self.SessionLocal()
            try:
                yield session
                session.commit()
            except SQLAlchemyError as e:
                session.rollback()
                logger.error("Registry store transaction failed: %s", e)
                raise InvalidState(
                    f"Registry store rejected the call: {type(e).__name__}",
                    code=ErrorCode.STORE_ERROR,
                ) from e
            except Exception:
                session.rollback()
                raise
            finally:
                session.close()

    @contextmanager
    def join(self, session: Session | None = None) -> Iterator[Session]:
        """Reuse the session of an enclosing transaction, or start a new one."""
        if session is not None:
            yield session
            return
        with self.transaction() as new_session:
            yield new_session

    def dispose(self) -> None:
        """Release pooled connections."""
        self.engine.dispose()

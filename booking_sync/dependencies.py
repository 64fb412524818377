"""
FastAPI dependency injection providers.

Routes receive the engine and the write-through repository through
``Depends`` so tests can swap in an in-memory database and a fake CRM via
``app.dependency_overrides``.
"""

from __future__ import annotations

from typing import Generator

from fastapi import Depends
from sqlalchemy.engine import Engine

from booking_sync.db.engine import engine
from booking_sync.network.crm import CrmClient
from booking_sync.services.repository import LocalCache, SyncingRepository


def get_db_engine() -> Generator[Engine, None, None]:
    """
    Provide database engine for dependency injection.

    Yields:
        Engine: SQLAlchemy database engine

    Testing Example:
        >>> app.dependency_overrides[get_db_engine] = lambda: test_engine
    """
    yield engine


def get_repository(db_engine: Engine = Depends(get_db_engine)) -> SyncingRepository:
    """
    Provide the CRM-backed write-through repository.

    Testing Example:
        >>> app.dependency_overrides[get_repository] = lambda: SyncingRepository(
        ...     FakeRemoteStore(), LocalCache(test_engine)
        ... )
    """
    return SyncingRepository(CrmClient(), LocalCache(db_engine))

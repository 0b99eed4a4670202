from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine  # noqa: TC002
from sqlalchemy.orm import Session, sessionmaker

from sidepost.adapters.memory import InMemoryStorageAdapter
from sidepost.adapters.sqlalchemy import SqlAlchemyStorageAdapter
from sidepost.adapters.sqlalchemy.unit_of_work import SqlAlchemyUnitOfWork, shutdown, startup
from sidepost.domain.registry import ResourceRegistry  # noqa: TC001
from tests.support.mappings import build_sql_registry, metadata, start_mappers
from tests.support.models import build_registry

os.environ.setdefault("DATABASE_URI", "sqlite+pysqlite:///:memory:")

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator


@pytest.fixture
def registry() -> ResourceRegistry:
    return build_registry()


@pytest.fixture
def memory_storage() -> InMemoryStorageAdapter:
    return InMemoryStorageAdapter()


@pytest.fixture(scope="session")
def sql_registry() -> ResourceRegistry:
    return build_sql_registry()


@pytest.fixture
def sqlite_engine() -> Iterator[Engine]:
    engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
    start_mappers()
    metadata.create_all(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def sqlite_session(sqlite_engine: Engine) -> Iterator[Session]:
    session_factory = sessionmaker(bind=sqlite_engine, future=True, expire_on_commit=False)
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def sql_storage(sqlite_session: Session) -> SqlAlchemyStorageAdapter:
    return SqlAlchemyStorageAdapter(sqlite_session)


@pytest.fixture
def sqlite_unit_of_work(
    sqlite_engine: Engine,
) -> Iterator[Callable[[], SqlAlchemyUnitOfWork]]:
    startup(engine=sqlite_engine, force=True)

    def factory() -> SqlAlchemyUnitOfWork:
        return SqlAlchemyUnitOfWork()

    try:
        yield factory
    finally:
        shutdown()

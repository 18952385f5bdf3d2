"""
charges_kernel.db.engine -- Process-wide engine and session factory.

Responsibility:
    Owns the one SQLAlchemy ``Engine`` the charges stores run against and
    hands out sessions.  ``session_scope()`` is the unit of work used by
    callers that do not manage transactions themselves.

Architecture position:
    Kernel > DB.  Imports ``db.base``; pulls in ``charges_kernel.models``
    only when creating or dropping tables so the metadata is complete.

Invariants enforced:
    - ``expire_on_commit=False``: domain objects built from a row stay
      readable after the surrounding transaction commits.
    - SQLite connections let SQLAlchemy emit ``BEGIN`` itself, so
      ``Session.begin_nested()`` (SAVEPOINT) behaves as on PostgreSQL.
    - An in-memory SQLite database is shared by every session of the
      engine (``StaticPool``).

Failure modes:
    - RuntimeError from any accessor called before ``init_engine_from_url``.
"""

import atexit
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from charges_kernel.logging_config import get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_session_factory: sessionmaker[Session] | None = None

_NOT_INITIALIZED = "database engine not initialized; call init_engine_from_url() first"


def _is_memory_sqlite(url: str) -> bool:
    return url.startswith("sqlite") and (":memory:" in url or url.rstrip("/") == "sqlite:")


def init_engine_from_url(database_url: str, echo: bool = False) -> Engine:
    """Create the engine for ``database_url`` and a session factory bound to it."""
    global _engine, _session_factory
    options: dict = {"echo": echo, "pool_pre_ping": True}
    if _is_memory_sqlite(database_url):
        options.update(
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    _engine = create_engine(database_url, **options)
    if _engine.dialect.name == "sqlite":
        event.listen(_engine, "connect", _sqlite_on_connect)
        event.listen(_engine, "begin", _sqlite_on_begin)
    _session_factory = sessionmaker(bind=_engine, expire_on_commit=False)
    logger.info("engine_initialized", extra={"dialect": _engine.dialect.name})
    return _engine


def _sqlite_on_connect(dbapi_connection, connection_record) -> None:
    # pysqlite's implicit transactions break SAVEPOINT; take over BEGIN.
    dbapi_connection.isolation_level = None
    dbapi_connection.execute("PRAGMA foreign_keys=ON")


def _sqlite_on_begin(conn) -> None:
    conn.exec_driver_sql("BEGIN")


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    if _session_factory is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _session_factory


def get_session() -> Session:
    return get_session_factory()()


@contextmanager
def session_scope() -> Iterator[Session]:
    """
    Unit of work: commit when the block exits cleanly, roll back otherwise.

        with session_scope() as session:
            ledger = ChargeLedger(SqlChargeStore(session))
            ledger.approve(charge_id, actor="mgr")
    """
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def _metadata():
    from charges_kernel.db.base import Base
    import charges_kernel.models  # noqa: F401  registers every table

    return Base.metadata


def create_tables() -> None:
    metadata = _metadata()
    metadata.create_all(get_engine())
    logger.info("tables_created", extra={"tables": sorted(metadata.tables)})


def drop_tables() -> None:
    _metadata().drop_all(get_engine())


def reset_engine() -> None:
    """Dispose the engine and forget the factory. Used by test teardown."""
    global _engine, _session_factory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None


atexit.register(reset_engine)

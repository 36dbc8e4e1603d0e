"""
Module: collision_kernel.db.engine
Responsibility: SQLAlchemy engine initialization, session factory management,
    and transactional scope utilities.  Single point of database connection
    configuration for the whole system.
Architecture position: Kernel > DB.  May import from db/base.py.
    Never imports the modules layer; collision_modules._orm_registry
    registers module models before calling create_tables().

Supported backends:
    - PostgreSQL (production): READ COMMITTED plus explicit row-level locks
      (SELECT ... FOR UPDATE) on PO rows and sequence counter rows.
    - SQLite (tests, single-node development): every transaction opens with
      BEGIN IMMEDIATE, so writers are serialized by the database file lock.
      SQLite ignores FOR UPDATE; the immediate lock gives the same
      serialization for counter allocation and receiving.

Failure modes:
    - RuntimeError if get_engine/get_session/get_session_factory is called
      before init_engine_from_url().
    - OperationalError ("database is locked") on SQLite if a writer holds
      the lock longer than ``busy_timeout`` seconds.
"""

import atexit
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.engine.url import make_url
from sqlalchemy.orm import Session, sessionmaker

from collision_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None


def _install_sqlite_locking(engine: Engine) -> None:
    """Take over pysqlite transaction handling and begin IMMEDIATE."""

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # Disable pysqlite's implicit BEGIN so SAVEPOINT and the
        # explicit BEGIN below are the only transaction statements.
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 40,
    pool_pre_ping: bool = True,
    pool_timeout: int = 30,
    busy_timeout: int = 30,
) -> Engine:
    """
    Initialize the SQLAlchemy engine from a database URL.

    Postconditions: Module-level engine and session factory are initialized.
        A second call replaces the first.

    Args:
        database_url: ``postgresql://...`` or ``sqlite:///path.db``.
        echo: If True, log all SQL statements.
        pool_size: Number of connections kept in the pool.
        max_overflow: Max connections beyond pool_size.
        pool_pre_ping: Test connections before use.
        pool_timeout: Seconds to wait for a pooled connection.
        busy_timeout: SQLite only; seconds to wait for the write lock.

    Returns:
        SQLAlchemy Engine instance.
    """
    global _engine, _SessionFactory

    url = make_url(database_url)
    dialect = url.get_backend_name()

    if dialect == "sqlite":
        _engine = create_engine(
            url,
            echo=echo,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_timeout=pool_timeout,
            connect_args={"timeout": busy_timeout, "check_same_thread": False},
        )
        _install_sqlite_locking(_engine)
    else:
        _engine = create_engine(
            url,
            echo=echo,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_pre_ping=pool_pre_ping,
            pool_timeout=pool_timeout,
            isolation_level="READ COMMITTED",
        )

    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    configure_logging()
    logger.info(
        "engine_initialized",
        extra={
            "dialect": dialect,
            "pool_size": pool_size,
            "max_overflow": max_overflow,
            "echo": echo,
        },
    )

    return _engine


def get_engine() -> Engine:
    """
    Get the current engine instance.

    Raises:
        RuntimeError: If engine has not been initialized.
    """
    if _engine is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _engine


def get_session() -> Session:
    """Get a new session instance."""
    return get_session_factory()()


def get_session_factory() -> sessionmaker[Session]:
    """
    Get the session factory.

    Each worker thread (batch processor, concurrency tests) creates its
    own session from this factory.
    """
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _SessionFactory


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """
    Provide a transactional scope around a series of operations.

    Commits on normal exit; rolls back and re-raises on exception; always
    closes the session.

    Usage:
        with session_scope() as session:
            session.add(entity)
    """
    session = get_session()
    logger.debug("transaction_started")
    try:
        yield session
        session.commit()
        logger.debug("transaction_committed")
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables() -> None:
    """
    Create every table registered on ``Base.metadata``.

    Only models already imported are registered; use
    ``collision_modules._orm_registry.create_all_tables()`` for the full
    schema.

    Preconditions: Engine must be initialized.
    """
    from collision_kernel.db.base import Base

    Base.metadata.create_all(get_engine())
    logger.info(
        "tables_created",
        extra={"table_count": len(Base.metadata.tables)},
    )


def drop_tables() -> None:
    """Drop all tables. Primarily for testing."""
    from collision_kernel.db.base import Base

    Base.metadata.drop_all(get_engine())


def reset_engine() -> None:
    """Dispose the engine and forget the session factory (test cleanup)."""
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
        _engine = None

    _SessionFactory = None


def _atexit_dispose():
    if _engine is not None:
        _engine.dispose()


atexit.register(_atexit_dispose)


def is_postgres() -> bool:
    """Check if the current engine is PostgreSQL."""
    return _engine is not None and _engine.dialect.name == "postgresql"

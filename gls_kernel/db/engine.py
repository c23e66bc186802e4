"""
Module: gls_kernel.db.engine
Responsibility: SQLAlchemy engine initialization, session factory management,
    and the transaction scope used by every mutating service method.  This is
    the single point of database connection configuration.
Architecture position: Kernel > DB.  May import from db/base.py, exceptions and
    logging.  MUST NOT import from models/, services/, selectors/ or outer
    layers (except create_tables(), which imports the ORM registry).

Invariants enforced:
    - PostgreSQL runs at READ COMMITTED with explicit row locks
      (SELECT ... FOR UPDATE) where stronger isolation is needed.
    - SQLite runs with foreign keys ON and real SAVEPOINT support, so the
      same services and tests run against either backend.
    - Every transaction opened through transaction_scope() either commits
      completely or rolls back completely, including when the caller is
      interrupted (BaseException).
    - Every transaction has a deadline; expiry raises StorageTimeoutError.

Failure modes:
    - RuntimeError if get_engine/get_session/get_session_factory is called
      before init_engine_from_url().
    - StorageTimeoutError when the statement timeout fires or the deadline
      passes before commit.
    - OptimisticLockError when a versioned UPDATE matched no row.
"""

import time
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from gls_kernel.exceptions import OptimisticLockError, StorageTimeoutError
from gls_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None

# PostgreSQL SQLSTATEs for query_canceled (statement_timeout) and lock_not_available
_PG_TIMEOUT_CODES = frozenset({"57014", "55P03"})


def _install_sqlite_listeners(engine: Engine) -> None:
    """Enable foreign keys and let SQLAlchemy drive BEGIN/SAVEPOINT on pysqlite."""

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 10,
    max_overflow: int = 5,
    pool_pre_ping: bool = True,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
    lock_timeout_seconds: float = 10.0,
) -> Engine:
    """
    Initialize the SQLAlchemy engine from a database URL.

    Postconditions: module-level _engine and _SessionFactory are set.  A
        second call replaces the first.

    Args:
        database_url: ``postgresql://...`` or ``sqlite:///path``.
        echo: If True, log all SQL statements.
        pool_size: Connections kept in the pool (PostgreSQL).
        max_overflow: Connections beyond pool_size (PostgreSQL).
        pool_pre_ping: Test connections before use.
        pool_timeout: Seconds to wait for a pooled connection.
        pool_recycle: Seconds after which a connection is recycled.
        lock_timeout_seconds: SQLite busy timeout.

    Returns:
        SQLAlchemy Engine instance.
    """
    global _engine, _SessionFactory

    if database_url.startswith("sqlite"):
        _engine = create_engine(
            database_url,
            echo=echo,
            connect_args={"timeout": lock_timeout_seconds, "check_same_thread": False},
        )
        _install_sqlite_listeners(_engine)
    else:
        _engine = create_engine(
            database_url,
            echo=echo,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_pre_ping=pool_pre_ping,
            pool_timeout=pool_timeout,
            pool_recycle=pool_recycle,
            isolation_level="READ COMMITTED",
        )

    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    configure_logging()
    logger.info(
        "engine_initialized",
        extra={
            "dialect": _engine.dialect.name,
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
    """
    Get a new session instance.

    Raises:
        RuntimeError: If engine has not been initialized.
    """
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _SessionFactory()


def get_session_factory() -> sessionmaker[Session]:
    """
    Get the session factory, e.g. one session per worker thread.

    Raises:
        RuntimeError: If engine has not been initialized.
    """
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _SessionFactory


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """
    Provide a new session with commit-or-rollback semantics, then close it.

    Usage:
        with session_scope() as session:
            PayablesService(session).create_bill(...)
    """
    session = get_session()
    logger.debug("session_opened")
    try:
        yield session
        session.commit()
    except BaseException:
        session.rollback()
        logger.warning("session_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def _is_timeout(exc: OperationalError) -> bool:
    orig = exc.orig
    if getattr(orig, "pgcode", None) in _PG_TIMEOUT_CODES:
        return True
    message = str(orig).lower()
    return "database is locked" in message or "statement timeout" in message


def _apply_statement_timeout(session: Session, timeout_seconds: float) -> None:
    """Bound every statement of the current transaction (PostgreSQL only)."""
    if session.get_bind().dialect.name != "postgresql":
        return
    millis = max(1, int(timeout_seconds * 1000))
    # SET does not accept bind parameters; millis is an int.
    session.execute(text(f"SET LOCAL statement_timeout = {millis}"))


@contextmanager
def transaction_scope(
    session: Session,
    operation: str,
    timeout_seconds: float | None = None,
) -> Generator[Session, None, None]:
    """
    Run one unit of work atomically on ``session``.

    Preconditions: ``session`` has no uncommitted work of its own.
    Postconditions: on normal exit everything is committed.  On any
        exception (including KeyboardInterrupt and task cancellation) the
        transaction is rolled back and the exception propagates.

    Raises:
        StorageTimeoutError: statement timeout fired or the deadline passed
            before commit.
        OptimisticLockError: a versioned UPDATE matched no row.
    """
    started = time.monotonic()
    if timeout_seconds is not None:
        _apply_statement_timeout(session, timeout_seconds)
    logger.debug("transaction_started", extra={"operation": operation})
    try:
        yield session
        if timeout_seconds is not None and time.monotonic() - started > timeout_seconds:
            raise StorageTimeoutError(operation, timeout_seconds)
        session.commit()
    except OperationalError as exc:
        session.rollback()
        if _is_timeout(exc):
            logger.warning(
                "transaction_timed_out",
                extra={"operation": operation, "timeout_seconds": timeout_seconds},
            )
            raise StorageTimeoutError(operation, timeout_seconds or 0.0) from exc
        logger.warning("transaction_rolled_back", extra={"operation": operation}, exc_info=True)
        raise
    except StaleDataError as exc:
        session.rollback()
        logger.warning("transaction_stale_write", extra={"operation": operation})
        raise OptimisticLockError("row", None) from exc
    except BaseException:
        session.rollback()
        logger.warning("transaction_rolled_back", extra={"operation": operation}, exc_info=True)
        raise
    logger.debug(
        "transaction_committed",
        extra={
            "operation": operation,
            "duration_ms": round((time.monotonic() - started) * 1000, 2),
        },
    )


def create_tables() -> None:
    """
    Create all tables defined by kernel and module ORM models.

    Preconditions: Engine must be initialized via init_engine_from_url().
    """
    from gls_kernel.db.base import Base
    from gls_modules._orm_registry import import_all_orm_models

    import_all_orm_models()
    Base.metadata.create_all(get_engine())


def drop_tables() -> None:
    """Drop all tables. Primarily for testing."""
    from gls_kernel.db.base import Base
    from gls_modules._orm_registry import import_all_orm_models

    import_all_orm_models()
    Base.metadata.drop_all(get_engine())


def reset_engine() -> None:
    """Dispose the engine and forget the session factory. Used by test teardown."""
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
        _engine = None

    _SessionFactory = None


def is_postgres() -> bool:
    """Check if the current engine is PostgreSQL."""
    if _engine is None:
        return False
    return _engine.dialect.name == "postgresql"

"""
Database configuration - SQLAlchemy persistence layer
Engine factory, session factory and the unit-of-work transaction wrapper
"""
import logging
import time
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.orm import Session, sessionmaker, declarative_base

from app.config import settings

logger = logging.getLogger(__name__)

Base = declarative_base()

# Substrings of driver messages that mark a retryable storage failure
TRANSIENT_MARKERS = (
    "database is locked",
    "database table is locked",
    "deadlock",
    "could not serialize",
    "lock timeout",
    "canceling statement due to lock timeout",
    "canceling statement due to statement timeout",
    "lock wait timeout exceeded",
    "maximum statement execution time exceeded",
)

# Unique columns whose collision means "regenerate and retry"
RETRYABLE_UNIQUE_COLUMNS = (
    "reservations.id", "reservations.reference", "reservations_pkey", "reservations_reference_key",
    "resource_slots.resource_id", "uq_resource_slot",
)


def server_timeout_connect_args(url: str) -> dict:
    """
    Per-session server timeouts so a blocked row lock or a runaway statement
    fails instead of waiting forever. The lock wait is bounded by
    TX_MAX_WAIT_SECONDS and a single statement by TX_TIMEOUT_SECONDS.
    """
    backend = make_url(url).get_backend_name()
    lock_ms = int(settings.TX_MAX_WAIT_SECONDS * 1000)
    statement_ms = int(settings.TX_TIMEOUT_SECONDS * 1000)

    if backend == "postgresql":
        return {"options": f"-c lock_timeout={lock_ms} -c statement_timeout={statement_ms}"}
    if backend in ("mysql", "mariadb"):
        lock_seconds = max(1, int(settings.TX_MAX_WAIT_SECONDS))
        return {
            "init_command": (
                f"SET SESSION innodb_lock_wait_timeout={lock_seconds}, "
                f"SESSION max_execution_time={statement_ms}"
            )
        }
    return {}


def create_db_engine(url: Optional[str] = None, **kwargs) -> Engine:
    """
    Build an engine with the transaction semantics the reservation engine relies on.

    SQLite: the driver's implicit transaction handling is disabled and every
    transaction starts with BEGIN IMMEDIATE, so writers are serialized and a
    conflict check followed by an insert cannot interleave with another writer.
    The busy timeout bounds how long a transaction waits to start.

    Other backends: the pool checkout timeout bounds the wait for a connection,
    server-side lock and statement timeouts bound the wait for row locks taken
    explicitly by the services.
    """
    url = url or settings.DATABASE_URL
    max_wait = settings.TX_MAX_WAIT_SECONDS

    if url.startswith("sqlite"):
        connect_args = kwargs.pop("connect_args", {})
        connect_args.setdefault("check_same_thread", False)
        connect_args.setdefault("timeout", max_wait)
        engine = create_engine(url, connect_args=connect_args, echo=settings.DEBUG, **kwargs)
        file_backed = engine.url.database not in (None, "", ":memory:")

        @event.listens_for(engine, "connect")
        def _sqlite_connect(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            if file_backed:
                cursor.execute("PRAGMA journal_mode=WAL")
                cursor.execute("PRAGMA synchronous=NORMAL")
            cursor.close()

        @event.listens_for(engine, "begin")
        def _sqlite_begin(conn):
            conn.exec_driver_sql("BEGIN IMMEDIATE")

        return engine

    connect_args = {**server_timeout_connect_args(url), **kwargs.pop("connect_args", {})}
    kwargs.setdefault("pool_timeout", max_wait)
    kwargs.setdefault("pool_pre_ping", True)
    return create_engine(url, connect_args=connect_args, echo=settings.DEBUG, **kwargs)


engine = create_db_engine()

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    """Dependency injection: yield a database session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind: Optional[Engine] = None):
    """Create all tables"""
    from app.models import ontology  # noqa
    bind = bind or engine
    Base.metadata.create_all(bind=bind)


@contextmanager
def unit_of_work(db: Session, timeout: Optional[float] = None) -> Iterator[Session]:
    """
    All-or-nothing unit of work.

    Commits when the body finishes, rolls back on any exception. A body that
    ran longer than the configured transaction timeout is rolled back and
    reported as TransactionTimeoutError instead of committed.
    """
    from app.services.errors import TransactionTimeoutError

    limit = settings.TX_TIMEOUT_SECONDS if timeout is None else timeout
    started = time.monotonic()
    try:
        yield db
        elapsed = time.monotonic() - started
        if elapsed > limit:
            raise TransactionTimeoutError(elapsed, limit)
        db.commit()
    except BaseException:
        db.rollback()
        raise


def is_transient_error(exc: BaseException) -> bool:
    """Whether a storage failure is worth retrying (lock contention or id collision)"""
    if isinstance(exc, IntegrityError):
        message = str(exc.orig).lower()
        return any(column in message for column in RETRYABLE_UNIQUE_COLUMNS)
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return True
    if isinstance(exc, OperationalError):
        message = str(exc.orig).lower()
        return any(marker in message for marker in TRANSIENT_MARKERS)
    return False

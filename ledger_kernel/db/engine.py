"""
Engine and session management for the ledger database.

One process-wide engine is built from a URL by ``init_engine_from_url()``;
everything else (the sweep driver, scripts, ``session_scope()``) asks this
module for sessions.

PostgreSQL connections run at READ COMMITTED.  Materialization claims an
occurrence with a conditional cursor UPDATE, and at that level a writer
that blocked behind a concurrent claim re-checks the WHERE clause after the
other commits, so it matches no row instead of claiming twice.

SQLite is supported for local runs and the test suite through
``configure_sqlite()``: foreign keys on, WAL journal, and BEGIN issued by
SQLAlchemy so that a SAVEPOINT always nests inside the session transaction.

Every accessor raises RuntimeError until an engine has been initialized.
"""

import atexit
from contextlib import contextmanager
from typing import Any, Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool

from ledger_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None

_NOT_INITIALIZED = "Engine not initialized. Call init_engine_from_url() first."


def _postgres_options(**pool: Any) -> dict[str, Any]:
    return {
        "poolclass": QueuePool,
        "isolation_level": "READ COMMITTED",
        **pool,
    }


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
    pool_pre_ping: bool = True,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
) -> Engine:
    """
    Build the process-wide engine and session factory, replacing any
    previous ones.  Pool settings apply to PostgreSQL only; SQLite keeps the
    driver's default pool and allows sessions to cross threads.
    """
    global _engine, _SessionFactory

    reset_engine()
    backend = make_url(database_url).get_backend_name()

    if backend == "sqlite":
        engine = create_engine(
            database_url, echo=echo, connect_args={"check_same_thread": False},
        )
        configure_sqlite(engine)
    else:
        engine = create_engine(
            database_url,
            echo=echo,
            **_postgres_options(
                pool_size=pool_size,
                max_overflow=max_overflow,
                pool_pre_ping=pool_pre_ping,
                pool_timeout=pool_timeout,
                pool_recycle=pool_recycle,
            ),
        )

    _engine = engine
    _SessionFactory = sessionmaker(bind=engine, expire_on_commit=False)

    configure_logging()
    logger.info(
        "engine_initialized",
        extra={
            "dialect": backend,
            "pool_size": pool_size,
            "max_overflow": max_overflow,
            "echo": echo,
        },
    )
    return engine


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    """The factory the sweep driver opens one session per definition from."""
    if _SessionFactory is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _SessionFactory


def get_session() -> Session:
    return get_session_factory()()


def is_postgres() -> bool:
    return _engine is not None and _engine.dialect.name == "postgresql"


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """
    Commit on clean exit, roll back and re-raise on error, always close.

        with session_scope() as session:
            RecurringDefinitionService(session, actor_id).create(user_id, data)
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

    The kernel models are imported here; engine packages such as
    ledger_recurring register their tables when they are imported.
    """
    from ledger_kernel.db.base import Base
    import ledger_kernel.models  # noqa: F401

    Base.metadata.create_all(get_engine())
    logger.info("tables_created", extra={"tables": sorted(Base.metadata.tables)})


def drop_tables() -> None:
    """Drop every registered table.  Test and local use only."""
    from ledger_kernel.db.base import Base

    Base.metadata.drop_all(get_engine())


def reset_engine() -> None:
    """Dispose the engine, if any, and forget the session factory."""
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionFactory = None


atexit.register(reset_engine)


def configure_sqlite(engine: Engine) -> Engine:
    """
    Make a pysqlite engine honour foreign keys and nested transactions.

    pysqlite's own transaction handling is switched off and BEGIN is sent on
    SQLAlchemy's begin event, so RELEASE SAVEPOINT never commits by itself.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        for pragma in ("foreign_keys=ON", "journal_mode=WAL", "busy_timeout=5000"):
            cursor.execute(f"PRAGMA {pragma}")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine

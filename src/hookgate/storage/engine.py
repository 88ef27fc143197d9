"""Engine and session factory for the audit store.

Provides SQLite engine creation with concurrency pragmas, session factory
creation, and database initialization.
"""

from __future__ import annotations

from sqlalchemy import Engine, create_engine, event, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from hookgate.exceptions import AuditStoreError
from hookgate.storage.schema import Base, HookgateMetaRow

SCHEMA_VERSION = "1"


def create_audit_engine(
    db_path: str = ":memory:",
    *,
    url: str | None = None,
) -> Engine:
    """Create a SQLAlchemy engine for the audit store.

    Args:
        db_path: Path to a SQLite database file, or ``":memory:"``.
            Ignored when *url* is provided.
        url: Full SQLAlchemy database URL.

    Returns:
        Configured SQLAlchemy Engine. SQLite engines get WAL journaling and
        a busy timeout so concurrent hosts can append to the same file.
    """
    if url is not None:
        engine = create_engine(url, echo=False)
    elif db_path == ":memory:":
        # One shared connection so every thread sees the same database
        engine = create_engine(
            "sqlite://",
            echo=False,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_engine(
            f"sqlite:///{db_path}",
            echo=False,
            connect_args={"check_same_thread": False},
        )

    if engine.dialect.name == "sqlite":

        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_conn, connection_record):  # type: ignore[no-untyped-def]
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA busy_timeout=5000")
            cursor.execute("PRAGMA synchronous=NORMAL")
            cursor.close()

    return engine


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    """Create a session factory bound to the given engine.

    Uses expire_on_commit=False so rows stay readable after commit.
    """
    return sessionmaker(bind=engine, expire_on_commit=False)


def init_db(engine: Engine) -> None:
    """Create all tables and record the schema version.

    Raises:
        AuditStoreError: If the database cannot be initialized, or was
            written by an incompatible schema version.
    """
    try:
        Base.metadata.create_all(engine)
        SessionLocal = create_session_factory(engine)
        with SessionLocal() as session:
            existing = session.execute(
                select(HookgateMetaRow).where(HookgateMetaRow.key == "schema_version")
            ).scalar_one_or_none()
            if existing is None:
                session.add(HookgateMetaRow(key="schema_version", value=SCHEMA_VERSION))
                session.commit()
            elif existing.value != SCHEMA_VERSION:
                raise AuditStoreError(
                    f"Audit database has schema version {existing.value}, "
                    f"expected {SCHEMA_VERSION}"
                )
    except SQLAlchemyError as exc:
        raise AuditStoreError(f"Cannot initialize audit database: {exc}") from exc

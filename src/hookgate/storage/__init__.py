"""SQLAlchemy-backed audit store."""

from hookgate.storage.engine import create_audit_engine, create_session_factory, init_db
from hookgate.storage.repositories import AuditRepository
from hookgate.storage.schema import Base, HookgateMetaRow, HookInvocationRow
from hookgate.storage.sqlite import SqliteAuditRepository

__all__ = [
    "AuditRepository",
    "Base",
    "HookgateMetaRow",
    "HookInvocationRow",
    "SqliteAuditRepository",
    "create_audit_engine",
    "create_session_factory",
    "init_db",
]

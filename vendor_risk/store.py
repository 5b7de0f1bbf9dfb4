"""Relational data store for the Vendor Risk service.

Wraps a SQLAlchemy engine and session factory. PostgreSQL is the production
target; SQLite (including in-memory) is used for development and tests.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator

import structlog
from sqlalchemy import create_engine, event, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import ORMExecuteState, Session, sessionmaker
from sqlalchemy.pool import StaticPool

from vendor_risk.errors import AuditLogImmutable
from vendor_risk.models import AuditLog, Base

logger = structlog.get_logger()

# Session.info key that authorises bulk removal of audit rows.
AUDIT_PURGE_FLAG = "allow_audit_purge"


def _enable_sqlite_foreign_keys(dbapi_connection: Any, connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _touches_audit_log(state: ORMExecuteState) -> bool:
    return any(mapper.class_ is AuditLog for mapper in state.all_mappers)


def _guard_audit_statements(state: ORMExecuteState) -> None:
    if not (state.is_update or state.is_delete) or not _touches_audit_log(state):
        return
    if state.is_delete and state.session.info.get(AUDIT_PURGE_FLAG):
        return
    raise AuditLogImmutable()


def _guard_audit_flush(session: Session, flush_context: Any, instances: Any) -> None:
    for obj in session.dirty:
        if isinstance(obj, AuditLog) and session.is_modified(obj):
            raise AuditLogImmutable()
    for obj in session.deleted:
        if isinstance(obj, AuditLog):
            raise AuditLogImmutable()


class DataStore:
    """Engine, session factory and transaction helper."""

    def __init__(self, database_url: str, *, echo: bool = False) -> None:
        self.database_url = database_url
        engine_kwargs: dict[str, Any] = {"echo": echo, "pool_pre_ping": True}
        if database_url.startswith("sqlite"):
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if ":memory:" in database_url or database_url in ("sqlite://", "sqlite:///"):
                engine_kwargs["poolclass"] = StaticPool

        self.engine = create_engine(database_url, **engine_kwargs)
        if self.engine.dialect.name == "sqlite":
            event.listen(self.engine, "connect", _enable_sqlite_foreign_keys)

        self.session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)
        event.listen(self.session_factory, "do_orm_execute", _guard_audit_statements)
        event.listen(self.session_factory, "before_flush", _guard_audit_flush)

    @property
    def dialect(self) -> str:
        return self.engine.dialect.name

    def create_schema(self) -> None:
        """Create all tables for tests and local runs. Production uses alembic."""
        Base.metadata.create_all(self.engine)

    def drop_schema(self) -> None:
        Base.metadata.drop_all(self.engine)

    def ping(self) -> None:
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))

    def apply_tenant_filter(self, session: Session, organization_id: str) -> bool:
        """Propagate the caller's organisation into the database session.

        Secondary defense only: application-level scoping is authoritative.
        Never raises; returns whether the filter is active.
        """
        if self.dialect != "postgresql":
            logger.debug("tenant_filter_unsupported", dialect=self.dialect)
            return False
        try:
            with session.begin_nested():
                session.execute(
                    text("SELECT set_config('app.current_org_id', :org_id, true)"),
                    {"org_id": organization_id},
                )
        except SQLAlchemyError as exc:
            logger.warning("tenant_filter_failed", organization_id=organization_id, error=str(exc))
            return False
        return True

    @contextmanager
    def transaction(self, organization_id: str | None = None) -> Iterator[Session]:
        """Yield a session wrapped in a single transaction.

        Commits on success, rolls back on any exception.
        """
        with self.session_factory() as session:
            with session.begin():
                if organization_id is not None:
                    self.apply_tenant_filter(session, organization_id)
                yield session

    def dispose(self) -> None:
        self.engine.dispose()

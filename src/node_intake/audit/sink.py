"""Fire-and-forget audit trail.

Audit entries are written after the primary operation has committed, in
their own transaction.  A failing audit write is logged and dropped; it
never fails the operation being audited.
"""

from __future__ import annotations

from typing import Protocol

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from node_intake.models.audit_log import AuditLog

logger = structlog.get_logger()

BATCH_UPLOAD = "BATCH_UPLOAD"
BATCH_ROLLBACK = "BATCH_ROLLBACK"
BATCH_STATUS_UPDATE = "BATCH_STATUS_UPDATE"
ENTITY_CREATE = "ENTITY_CREATE"
ENTITY_UPDATE = "ENTITY_UPDATE"
NODE_CREATE = "NODE_CREATE"
NODE_UPDATE = "NODE_UPDATE"
STAGING_REJECT = "STAGING_REJECT"


class AuditSink(Protocol):
    async def record(
        self,
        action: str,
        owner_id: str,
        resource_type: str,
        resource_id: str | None = None,
        details: dict | None = None,
    ) -> None: ...


class SqlAuditSink:
    """Appends rows to the ``audit_log`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def record(
        self,
        action: str,
        owner_id: str,
        resource_type: str,
        resource_id: str | None = None,
        details: dict | None = None,
    ) -> None:
        try:
            async with self._session_factory() as session, session.begin():
                session.add(
                    AuditLog(
                        action=action,
                        owner_id=owner_id,
                        resource_type=resource_type,
                        resource_id=resource_id,
                        details=details,
                    )
                )
        except Exception as exc:
            logger.warning(
                "audit_write_failed",
                action=action,
                resource_type=resource_type,
                resource_id=resource_id,
                error=str(exc),
            )

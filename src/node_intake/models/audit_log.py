"""Audit trail of registry writes, batch uploads and rollbacks."""

from __future__ import annotations

from datetime import datetime

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from node_intake.models.base import Base


class AuditLog(Base):
    __tablename__ = "audit_log"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    action: Mapped[str] = mapped_column(sa.String)  # "BATCH_UPLOAD", "NODE_CREATE", ...
    owner_id: Mapped[str] = mapped_column(sa.String, default="anonymous")
    resource_type: Mapped[str] = mapped_column(sa.String)
    resource_id: Mapped[str | None] = mapped_column(sa.String, nullable=True)
    details: Mapped[dict | None] = mapped_column(sa.JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime, server_default=sa.text("CURRENT_TIMESTAMP")
    )

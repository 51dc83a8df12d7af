from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship

from node_intake.models.base import Base

if TYPE_CHECKING:
    from node_intake.models.staging_node import StagingNode


class BatchLog(Base):
    """One CSV upload job and the unit of rollback."""

    __tablename__ = "batch_logs"

    id: Mapped[str] = mapped_column(sa.String, primary_key=True)
    batch_name: Mapped[str] = mapped_column(sa.String)
    source_type: Mapped[str] = mapped_column(sa.String, default="csv_upload")
    created_by: Mapped[str] = mapped_column(sa.String)
    owner_id: Mapped[str] = mapped_column(sa.String, index=True)

    status: Mapped[str] = mapped_column(sa.String, default="pending")
    total_records: Mapped[int] = mapped_column(sa.Integer, default=0)
    processed_records: Mapped[int] = mapped_column(sa.Integer, default=0)
    error_records: Mapped[int] = mapped_column(sa.Integer, default=0)
    duplicate_warnings: Mapped[int] = mapped_column(sa.Integer, default=0)
    error_report: Mapped[dict | None] = mapped_column(sa.JSON, nullable=True)
    processing_notes: Mapped[str | None] = mapped_column(sa.Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(sa.DateTime, server_default=sa.text("CURRENT_TIMESTAMP"))
    updated_at: Mapped[datetime | None] = mapped_column(sa.DateTime, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(sa.DateTime, nullable=True)
    rollback_at: Mapped[datetime | None] = mapped_column(sa.DateTime, nullable=True)
    rollback_by: Mapped[str | None] = mapped_column(sa.String, nullable=True)

    staging_nodes: Mapped[list[StagingNode]] = relationship("StagingNode", back_populates="batch")

    __mapper_args__ = {"eager_defaults": True}
    __table_args__ = (
        sa.CheckConstraint(
            "status IN ('pending', 'processed', 'error', 'cancelled', 'rolled_back')",
            name="valid_batch_status",
        ),
    )

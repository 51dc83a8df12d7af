from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship

from node_intake.models.base import Base

if TYPE_CHECKING:
    from node_intake.models.batch_log import BatchLog


class StagingNode(Base):
    """A sanitized CSV row waiting for a human decision."""

    __tablename__ = "staging_nodes"

    id: Mapped[str] = mapped_column(sa.String, primary_key=True)
    batch_id: Mapped[str] = mapped_column(sa.ForeignKey("batch_logs.id"), index=True)
    owner_id: Mapped[str] = mapped_column(sa.String, index=True)
    row_number: Mapped[int] = mapped_column(sa.Integer)

    # Sanitized fields
    node_name: Mapped[str] = mapped_column(sa.String)
    entity_name: Mapped[str] = mapped_column(sa.String)
    website: Mapped[str] = mapped_column(sa.String)
    node_category: Mapped[str] = mapped_column(sa.String)
    direction: Mapped[str] = mapped_column(sa.String)
    notes: Mapped[str] = mapped_column(sa.Text, default="")
    connect_targets: Mapped[list] = mapped_column(sa.JSON, default=list)
    protocols_supported: Mapped[list] = mapped_column(sa.JSON, default=list)
    data_types_supported: Mapped[list] = mapped_column(sa.JSON, default=list)
    extracted_tags: Mapped[list] = mapped_column(sa.JSON, default=list)
    original_data: Mapped[dict] = mapped_column(sa.JSON, default=dict)

    # Intake screening
    confidence_score: Mapped[float] = mapped_column(sa.Float)
    duplicate_matches: Mapped[list] = mapped_column(sa.JSON, default=list)
    lookup_failed: Mapped[bool] = mapped_column(sa.Boolean, default=False)

    # Latest DeduplicationResult, set by the analysis step
    duplicate_analysis: Mapped[dict | None] = mapped_column(sa.JSON, nullable=True)

    status: Mapped[str] = mapped_column(sa.String, default="pending")
    committed_entity_id: Mapped[str | None] = mapped_column(sa.String, nullable=True)
    committed_node_id: Mapped[str | None] = mapped_column(sa.String, nullable=True)
    decided_by: Mapped[str | None] = mapped_column(sa.String, nullable=True)
    decided_at: Mapped[datetime | None] = mapped_column(sa.DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(sa.DateTime, server_default=sa.text("CURRENT_TIMESTAMP"))

    batch: Mapped[BatchLog] = relationship("BatchLog", back_populates="staging_nodes")

    __mapper_args__ = {"eager_defaults": True}
    __table_args__ = (
        sa.CheckConstraint(
            "status IN ('pending', 'reviewed', 'approved', 'rejected', 'merged')",
            name="valid_staging_status",
        ),
    )

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship

from node_intake.models.base import Base

if TYPE_CHECKING:
    from node_intake.models.entity import Entity


class Node(Base):
    """A specific system operated by an entity (e.g. one PMS product)."""

    __tablename__ = "nodes"

    # Human-readable id: {entity}_{category}_{6-char suffix}
    id: Mapped[str] = mapped_column(sa.String, primary_key=True)
    owner_id: Mapped[str] = mapped_column(sa.String, index=True)

    node_name: Mapped[str] = mapped_column(sa.String)
    entity_id: Mapped[str] = mapped_column(sa.ForeignKey("entities.id"), index=True)
    # Denormalized for display and matching
    entity_name: Mapped[str] = mapped_column(sa.String)

    node_category: Mapped[str] = mapped_column(sa.String)
    direction: Mapped[str] = mapped_column(sa.String)
    connects_to: Mapped[list] = mapped_column(sa.JSON, default=list)
    protocols_supported: Mapped[list] = mapped_column(sa.JSON, default=list)
    data_types_supported: Mapped[list] = mapped_column(sa.JSON, default=list)
    node_aliases: Mapped[list] = mapped_column(sa.JSON, default=list)
    website: Mapped[str | None] = mapped_column(sa.String, nullable=True)
    notes: Mapped[str] = mapped_column(sa.Text, default="")
    is_active: Mapped[bool] = mapped_column(sa.Boolean, default=True)
    last_verified: Mapped[datetime | None] = mapped_column(sa.DateTime, nullable=True)

    version: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=1)

    created_at: Mapped[datetime] = mapped_column(sa.DateTime, server_default=sa.text("CURRENT_TIMESTAMP"))
    updated_at: Mapped[datetime | None] = mapped_column(sa.DateTime, nullable=True)

    entity: Mapped[Entity] = relationship("Entity", back_populates="nodes")

    __mapper_args__ = {"version_id_col": version, "eager_defaults": True}

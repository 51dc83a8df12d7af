from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship

from node_intake.models.base import Base

if TYPE_CHECKING:
    from node_intake.models.node import Node


class Entity(Base):
    """A company/provider in the committed registry."""

    __tablename__ = "entities"

    id: Mapped[str] = mapped_column(sa.String, primary_key=True)
    owner_id: Mapped[str] = mapped_column(sa.String, index=True)

    master_entity_name: Mapped[str] = mapped_column(sa.String)
    alternate_names: Mapped[list] = mapped_column(sa.JSON, default=list)
    website: Mapped[str | None] = mapped_column(sa.String, nullable=True)

    # Bumped on every write; concurrent alias folds surface as StaleDataError
    version: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=1)

    created_at: Mapped[datetime] = mapped_column(sa.DateTime, server_default=sa.text("CURRENT_TIMESTAMP"))
    updated_at: Mapped[datetime | None] = mapped_column(sa.DateTime, nullable=True)

    nodes: Mapped[list[Node]] = relationship("Node", back_populates="entity")

    __mapper_args__ = {"version_id_col": version, "eager_defaults": True}
    __table_args__ = (
        sa.CheckConstraint("master_entity_name <> ''", name="entity_name_not_empty"),
    )

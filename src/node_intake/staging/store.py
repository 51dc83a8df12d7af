"""Staging row persistence.

All functions take the caller's session so they join the caller's
transaction; none of them commit.
"""

from __future__ import annotations

from collections.abc import Iterable
from uuid import uuid4

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from node_intake.models.staging_node import StagingNode
from node_intake.preprocessing.sanitizer import SanitizedRow


def build_staging_node(row: SanitizedRow, batch_id: str, owner_id: str) -> StagingNode:
    """Map a sanitized row onto a new ``pending`` staging row."""
    return StagingNode(
        id=uuid4().hex,
        batch_id=batch_id,
        owner_id=owner_id,
        row_number=row.row_number,
        node_name=row.node_name,
        entity_name=row.entity_name,
        website=row.website,
        node_category=row.node_category,
        direction=row.direction,
        notes=row.notes,
        connect_targets=list(row.connect_targets),
        protocols_supported=list(row.protocols_supported),
        data_types_supported=list(row.data_types_supported),
        extracted_tags=list(row.extracted_tags),
        original_data=row.original_data,
        confidence_score=row.confidence_score,
        duplicate_matches=list(row.potential_duplicates),
        lookup_failed=row.lookup_failed,
        status="pending",
    )


def add_staging_nodes(
    session: AsyncSession, rows: Iterable[SanitizedRow], batch_id: str, owner_id: str
) -> list[StagingNode]:
    """Add one staging row per sanitized row to *session*."""
    staging_nodes = [build_staging_node(row, batch_id, owner_id) for row in rows]
    session.add_all(staging_nodes)
    return staging_nodes


async def get_staging_node(session: AsyncSession, staging_id: str, owner_id: str) -> StagingNode | None:
    result = await session.execute(
        sa.select(StagingNode).where(
            StagingNode.id == staging_id,
            StagingNode.owner_id == owner_id,
        )
    )
    return result.scalar_one_or_none()


async def list_staging_nodes(
    session: AsyncSession, batch_id: str, owner_id: str | None = None
) -> list[StagingNode]:
    """Staging rows of one batch in file order, optionally owner-scoped."""
    stmt = sa.select(StagingNode).where(StagingNode.batch_id == batch_id)
    if owner_id is not None:
        stmt = stmt.where(StagingNode.owner_id == owner_id)
    result = await session.execute(stmt.order_by(StagingNode.row_number))
    return list(result.scalars().all())


async def delete_staging_nodes(session: AsyncSession, batch_id: str) -> int:
    """Delete every staging row of *batch_id*; returns the number deleted."""
    result = await session.execute(sa.delete(StagingNode).where(StagingNode.batch_id == batch_id))
    return result.rowcount or 0

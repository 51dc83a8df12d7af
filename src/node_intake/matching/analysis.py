"""Deduplication analysis of a staged batch.

Reads the owner's registry once, scores every undecided staging row with
the pure matching pipeline and stores each row's result on the row.
"""

from __future__ import annotations

import sqlalchemy as sa
import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from node_intake.batches.lifecycle import get_owned_batch
from node_intake.errors import DuplicateLookupError
from node_intake.matching.config import DeduplicationConfig
from node_intake.matching.pipeline import DeduplicationResult, analyze_rows
from node_intake.models.enums import OPEN_STAGING_STATUSES, StagingStatus
from node_intake.models.staging_node import StagingNode
from node_intake.registry.reader import RegistryReader, RegistrySnapshot, load_registry_snapshot
from node_intake.results import OperationError, not_found
from node_intake.staging.store import list_staging_nodes

logger = structlog.get_logger()


class DeduplicationAnalyzer:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        registry: RegistryReader,
        config: DeduplicationConfig | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.registry = registry
        self.config = config or DeduplicationConfig()

    async def analyze_deduplication(
        self, batch_id: str, owner_id: str
    ) -> list[DeduplicationResult] | OperationError:
        """Score the batch's undecided rows against the registry.

        If the registry cannot be read, every row comes back with
        ``lookup_failed`` set and a ``manual_review`` suggestion.  Rows
        still ``pending`` move to ``reviewed``.
        """
        log = logger.bind(batch_id=batch_id, owner_id=owner_id)

        async with self.session_factory() as session:
            if await get_owned_batch(session, batch_id, owner_id) is None:
                return not_found(f"Batch {batch_id} not found")
            rows = [
                row
                for row in await list_staging_nodes(session, batch_id, owner_id)
                if row.status in OPEN_STAGING_STATUSES
            ]

        snapshot: RegistrySnapshot | None
        try:
            snapshot = await load_registry_snapshot(self.registry, owner_id)
        except DuplicateLookupError:
            snapshot = None

        results = analyze_rows(rows, snapshot, self.config)
        by_id = {result.staging_id: result for result in results}

        async with self.session_factory() as session, session.begin():
            stored = await session.execute(
                sa.select(StagingNode).where(
                    StagingNode.id.in_(list(by_id)),
                    StagingNode.status.in_(OPEN_STAGING_STATUSES),
                )
            )
            for row in stored.scalars().all():
                result = by_id[row.id]
                row.duplicate_analysis = result.to_dict()
                row.lookup_failed = result.lookup_failed
                if row.status == StagingStatus.PENDING.value:
                    row.status = StagingStatus.REVIEWED.value

        log.info(
            "deduplication_analyzed",
            rows=len(results),
            with_duplicates=sum(1 for r in results if r.has_duplicates),
            lookup_failures=sum(1 for r in results if r.lookup_failed),
        )
        return results

"""Read-only access to the committed registry of entities and nodes.

Matching never touches ORM objects directly: the registry for one owner
is read once into a ``RegistrySnapshot`` of plain records, and every row of
a batch is scored against that snapshot.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Protocol

import sqlalchemy as sa
import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from node_intake.errors import DuplicateLookupError
from node_intake.matching.similarity import similarity
from node_intake.models.entity import Entity
from node_intake.models.node import Node

logger = structlog.get_logger()

# Quick intake screen, stricter than the full analysis
SCREEN_ENTITY_NAME_THRESHOLD = 0.7
SCREEN_NODE_NAME_THRESHOLD = 0.7
SCREEN_NODE_ENTITY_THRESHOLD = 0.8


@dataclass(frozen=True)
class EntityRecord:
    id: str
    master_entity_name: str
    alternate_names: tuple[str, ...] = ()
    website: str | None = None

    @classmethod
    def from_model(cls, entity: Entity) -> EntityRecord:
        return cls(
            id=entity.id,
            master_entity_name=entity.master_entity_name,
            alternate_names=tuple(entity.alternate_names or ()),
            website=entity.website,
        )


@dataclass(frozen=True)
class NodeRecord:
    id: str
    node_name: str
    entity_id: str
    entity_name: str
    node_category: str
    direction: str
    node_aliases: tuple[str, ...] = ()
    website: str | None = None

    @classmethod
    def from_model(cls, node: Node) -> NodeRecord:
        return cls(
            id=node.id,
            node_name=node.node_name,
            entity_id=node.entity_id,
            entity_name=node.entity_name,
            node_category=node.node_category,
            direction=node.direction,
            node_aliases=tuple(node.node_aliases or ()),
            website=node.website,
        )


@dataclass
class RegistrySnapshot:
    """All entities and nodes of one owner, read at a single point in time."""

    entities: list[EntityRecord] = field(default_factory=list)
    nodes: list[NodeRecord] = field(default_factory=list)


class RegistryReader(Protocol):
    """Owner-scoped read access to the registry."""

    async def list_entities(self, owner_id: str) -> list[EntityRecord]: ...

    async def list_nodes(self, owner_id: str) -> list[NodeRecord]: ...


class SqlRegistryReader:
    """``RegistryReader`` backed by the ``entities`` and ``nodes`` tables.

    Each listing uses its own session so the two reads can run
    concurrently.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def list_entities(self, owner_id: str) -> list[EntityRecord]:
        async with self._session_factory() as session:
            result = await session.execute(
                sa.select(Entity).where(Entity.owner_id == owner_id).order_by(Entity.id)
            )
            return [EntityRecord.from_model(e) for e in result.scalars().all()]

    async def list_nodes(self, owner_id: str) -> list[NodeRecord]:
        async with self._session_factory() as session:
            result = await session.execute(
                sa.select(Node).where(Node.owner_id == owner_id).order_by(Node.id)
            )
            return [NodeRecord.from_model(n) for n in result.scalars().all()]


async def load_registry_snapshot(reader: RegistryReader, owner_id: str) -> RegistrySnapshot:
    """Fetch entities and nodes for *owner_id* concurrently.

    Raises:
        DuplicateLookupError: If either read fails.
    """
    try:
        entities, nodes = await asyncio.gather(
            reader.list_entities(owner_id),
            reader.list_nodes(owner_id),
        )
    except Exception as exc:
        logger.warning("registry_read_failed", owner_id=owner_id, error=str(exc))
        raise DuplicateLookupError(f"Registry lookup failed: {exc}") from exc

    return RegistrySnapshot(entities=list(entities), nodes=list(nodes))


def find_potential_duplicates(
    node_name: str, entity_name: str, snapshot: RegistrySnapshot
) -> list[str]:
    """Entity and node ids that look like an obvious duplicate of the row.

    An entity qualifies when its canonical name is more than 0.7 similar to
    *entity_name*; a node when its name is more than 0.7 similar to
    *node_name* or its entity name more than 0.8 similar to *entity_name*.
    """
    duplicates: list[str] = []

    for entity in snapshot.entities:
        if similarity(entity.master_entity_name, entity_name) > SCREEN_ENTITY_NAME_THRESHOLD:
            duplicates.append(entity.id)

    for node in snapshot.nodes:
        if (
            similarity(node.node_name, node_name) > SCREEN_NODE_NAME_THRESHOLD
            or similarity(node.entity_name, entity_name) > SCREEN_NODE_ENTITY_THRESHOLD
        ):
            duplicates.append(node.id)

    return duplicates

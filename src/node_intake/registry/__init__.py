"""Owner-scoped, read-only view of the committed entity/node registry."""

from node_intake.registry.reader import (
    EntityRecord,
    NodeRecord,
    RegistryReader,
    RegistrySnapshot,
    SqlRegistryReader,
    find_potential_duplicates,
    load_registry_snapshot,
)

__all__ = [
    "EntityRecord",
    "find_potential_duplicates",
    "load_registry_snapshot",
    "NodeRecord",
    "RegistryReader",
    "RegistrySnapshot",
    "SqlRegistryReader",
]

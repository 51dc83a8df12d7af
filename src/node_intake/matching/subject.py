from __future__ import annotations

from typing import Protocol


class MatchSubject(Protocol):
    """The fields of a staged row that the matchers read (see ``StagingNode``)."""

    id: str
    node_name: str
    entity_name: str
    website: str
    node_category: str
    direction: str

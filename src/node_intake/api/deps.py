"""FastAPI dependency injection for sessions, caller identity and services."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from node_intake.audit.sink import AuditSink, SqlAuditSink
from node_intake.batches.lifecycle import BatchManager
from node_intake.config.settings import Settings, get_settings
from node_intake.db.session import get_session_factory
from node_intake.ingestion.batch_processor import BatchProcessor
from node_intake.matching.analysis import DeduplicationAnalyzer
from node_intake.matching.config import DeduplicationConfig, load_dedup_config
from node_intake.registry.reader import RegistryReader, SqlRegistryReader
from node_intake.review.operations import DecisionProcessor, DocumentLocks


def get_db_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory handed to the services; each opens its own transactions."""
    return get_session_factory()


async def get_owner_id(x_owner_id: str | None = Header(default=None)) -> str:
    """Caller identity as supplied by the upstream identity provider."""
    if not x_owner_id or not x_owner_id.strip():
        raise HTTPException(status_code=401, detail="Missing X-Owner-Id header")
    return x_owner_id.strip()


@lru_cache
def _cached_dedup_config(path: Path) -> DeduplicationConfig:
    return load_dedup_config(path)


def get_dedup_config(settings: Settings = Depends(get_settings)) -> DeduplicationConfig:
    return _cached_dedup_config(settings.dedup_config_path)


def get_registry(
    factory: async_sessionmaker[AsyncSession] = Depends(get_db_factory),
) -> RegistryReader:
    return SqlRegistryReader(factory)


def get_audit_sink(
    factory: async_sessionmaker[AsyncSession] = Depends(get_db_factory),
) -> AuditSink:
    return SqlAuditSink(factory)


def get_batch_processor(
    factory: async_sessionmaker[AsyncSession] = Depends(get_db_factory),
    registry: RegistryReader = Depends(get_registry),
    audit: AuditSink = Depends(get_audit_sink),
    settings: Settings = Depends(get_settings),
) -> BatchProcessor:
    return BatchProcessor(
        factory,
        registry,
        audit,
        max_concurrency=settings.max_concurrency,
        timeout_seconds=settings.batch_timeout_seconds,
    )


def get_batch_manager(
    factory: async_sessionmaker[AsyncSession] = Depends(get_db_factory),
    audit: AuditSink = Depends(get_audit_sink),
    settings: Settings = Depends(get_settings),
) -> BatchManager:
    return BatchManager(factory, audit, list_limit=settings.batch_list_limit)


def get_analyzer(
    factory: async_sessionmaker[AsyncSession] = Depends(get_db_factory),
    registry: RegistryReader = Depends(get_registry),
    config: DeduplicationConfig = Depends(get_dedup_config),
) -> DeduplicationAnalyzer:
    return DeduplicationAnalyzer(factory, registry, config)


def get_document_locks(request: Request) -> DocumentLocks:
    """Decision locks shared by every request this app serves.

    Other worker processes are not covered; there the entity and node
    ``version`` check turns a lost update into a ``conflict`` outcome.
    """
    locks = getattr(request.app.state, "document_locks", None)
    if locks is None:
        locks = request.app.state.document_locks = DocumentLocks()
    return locks


def get_decision_processor(
    factory: async_sessionmaker[AsyncSession] = Depends(get_db_factory),
    audit: AuditSink = Depends(get_audit_sink),
    settings: Settings = Depends(get_settings),
    locks: DocumentLocks = Depends(get_document_locks),
) -> DecisionProcessor:
    return DecisionProcessor(factory, audit, concurrency=settings.decision_concurrency, locks=locks)

"""API routes for CSV batch intake and the batch lifecycle."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query

from node_intake.api.deps import (
    get_analyzer,
    get_batch_manager,
    get_batch_processor,
    get_owner_id,
)
from node_intake.api.outcomes import raise_for_outcome
from node_intake.api.schemas import (
    BatchLogSchema,
    BatchProcessingResponse,
    DeduplicationResultSchema,
    ProcessBatchRequest,
    RollbackResponse,
    RowValidationErrorSchema,
    StagingNodeSchema,
    UpdateBatchStatusRequest,
)
from node_intake.batches.lifecycle import BatchManager
from node_intake.errors import BatchProcessingError, ParseError, RollbackError
from node_intake.ingestion.batch_processor import BatchProcessor
from node_intake.matching.analysis import DeduplicationAnalyzer
from node_intake.results import OperationError

router = APIRouter(prefix="/api/batches", tags=["batches"])


@router.post("", response_model=BatchProcessingResponse, status_code=201)
async def upload_batch(
    request: ProcessBatchRequest,
    owner_id: str = Depends(get_owner_id),
    processor: BatchProcessor = Depends(get_batch_processor),
) -> BatchProcessingResponse:
    """Parse, validate and stage a CSV upload as a new batch."""
    try:
        result = await processor.process_batch(request.csv_content, request.batch_name, owner_id)
    except ParseError as exc:
        raise HTTPException(status_code=400, detail={"error": str(exc), "batch_id": exc.batch_id})
    except BatchProcessingError as exc:
        raise HTTPException(status_code=500, detail={"error": str(exc), "batch_id": exc.batch_id})

    return BatchProcessingResponse(
        batch_id=result.batch_id,
        total_rows=result.total_rows,
        valid_rows=result.valid_rows,
        invalid_rows=result.invalid_rows,
        staging_nodes=[StagingNodeSchema.model_validate(n) for n in result.staging_nodes],
        validation_errors=[RowValidationErrorSchema.model_validate(e) for e in result.validation_errors],
        duplicate_warnings=result.duplicate_warnings,
        lookup_failures=result.lookup_failures,
    )


@router.get("", response_model=list[BatchLogSchema])
async def list_batches(
    owner_id: str = Depends(get_owner_id),
    manager: BatchManager = Depends(get_batch_manager),
    limit: int | None = Query(default=None, ge=1, le=1000),
) -> list[BatchLogSchema]:
    """Most recent batches of the caller first."""
    batches = await manager.list_batches(owner_id, limit)
    return [BatchLogSchema.model_validate(b) for b in batches]


@router.get("/{batch_id}", response_model=BatchLogSchema)
async def get_batch(
    batch_id: str,
    owner_id: str = Depends(get_owner_id),
    manager: BatchManager = Depends(get_batch_manager),
) -> BatchLogSchema:
    batch = await manager.get_batch_status(batch_id, owner_id)
    if isinstance(batch, OperationError):
        raise_for_outcome(batch)
    return BatchLogSchema.model_validate(batch)


@router.patch("/{batch_id}", response_model=BatchLogSchema)
async def update_batch_status(
    batch_id: str,
    request: UpdateBatchStatusRequest,
    owner_id: str = Depends(get_owner_id),
    manager: BatchManager = Depends(get_batch_manager),
) -> BatchLogSchema:
    """Operator status change (e.g. cancel a processed batch)."""
    batch = await manager.update_batch_status(batch_id, owner_id, request.status, request.processing_notes)
    if isinstance(batch, OperationError):
        raise_for_outcome(batch)
    return BatchLogSchema.model_validate(batch)


@router.get("/{batch_id}/staging-nodes", response_model=list[StagingNodeSchema])
async def list_staging_nodes(
    batch_id: str,
    owner_id: str = Depends(get_owner_id),
    manager: BatchManager = Depends(get_batch_manager),
) -> list[StagingNodeSchema]:
    nodes = await manager.get_staging_nodes(batch_id, owner_id)
    if isinstance(nodes, OperationError):
        raise_for_outcome(nodes)
    return [StagingNodeSchema.model_validate(n) for n in nodes]


@router.post("/{batch_id}/analyze", response_model=list[DeduplicationResultSchema])
async def analyze_batch(
    batch_id: str,
    owner_id: str = Depends(get_owner_id),
    analyzer: DeduplicationAnalyzer = Depends(get_analyzer),
) -> list[DeduplicationResultSchema]:
    """Score the batch's undecided rows against the registry."""
    results = await analyzer.analyze_deduplication(batch_id, owner_id)
    if isinstance(results, OperationError):
        raise_for_outcome(results)
    return [DeduplicationResultSchema.model_validate(r.to_dict()) for r in results]


@router.post("/{batch_id}/rollback", response_model=RollbackResponse)
async def rollback_batch(
    batch_id: str,
    owner_id: str = Depends(get_owner_id),
    manager: BatchManager = Depends(get_batch_manager),
) -> RollbackResponse:
    """Delete the batch's staging rows and mark it rolled back."""
    try:
        result = await manager.rollback_batch(batch_id, owner_id)
    except RollbackError as exc:
        raise HTTPException(status_code=500, detail={"error": str(exc), "batch_id": exc.batch_id})
    if isinstance(result, OperationError):
        raise_for_outcome(result)
    return RollbackResponse(success=result.success, staging_nodes_deleted=result.staging_nodes_deleted)

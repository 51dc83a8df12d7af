"""API route for applying reviewer decisions to staged rows."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from node_intake.api.deps import get_decision_processor, get_owner_id
from node_intake.api.schemas import DecisionErrorSchema, DecisionsRequest, DecisionsResponse
from node_intake.review.operations import Decision, DecisionProcessor

router = APIRouter(prefix="/api/decisions", tags=["decisions"])


@router.post("", response_model=DecisionsResponse)
async def apply_decisions(
    request: DecisionsRequest,
    owner_id: str = Depends(get_owner_id),
    processor: DecisionProcessor = Depends(get_decision_processor),
) -> DecisionsResponse:
    """Apply each decision independently; failures are listed, not raised."""
    decisions = [
        Decision(
            staging_id=d.staging_id,
            action=d.action,
            target_id=d.target_id,
            manual_edits=d.manual_edits,
        )
        for d in request.decisions
    ]
    result = await processor.apply_decisions(decisions, owner_id)
    return DecisionsResponse(
        processed=result.processed,
        errors=[
            DecisionErrorSchema(staging_id=e.staging_id, kind=e.kind.value, error=e.error)
            for e in result.errors
        ],
    )

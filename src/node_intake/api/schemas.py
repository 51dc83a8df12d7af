"""Pydantic request/response schemas for the Node Intake API."""

from __future__ import annotations

import datetime as dt
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class ProcessBatchRequest(BaseModel):
    csv_content: str
    batch_name: str | None = None


class RowValidationErrorSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    row: int
    field: str
    error: str
    value: Any = None


class StagingNodeSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    batch_id: str
    row_number: int
    node_name: str
    entity_name: str
    website: str
    node_category: str
    direction: str
    notes: str = ""
    connect_targets: list[str] = []
    protocols_supported: list[str] = []
    data_types_supported: list[str] = []
    extracted_tags: list[str] = []
    original_data: dict = {}
    confidence_score: float
    duplicate_matches: list[str] = []
    lookup_failed: bool = False
    duplicate_analysis: dict | None = None
    status: str
    committed_entity_id: str | None = None
    committed_node_id: str | None = None
    decided_by: str | None = None
    decided_at: dt.datetime | None = None


class BatchProcessingResponse(BaseModel):
    batch_id: str
    total_rows: int
    valid_rows: int
    invalid_rows: int
    staging_nodes: list[StagingNodeSchema]
    validation_errors: list[RowValidationErrorSchema]
    duplicate_warnings: int
    lookup_failures: int


class BatchLogSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    batch_name: str
    source_type: str
    created_by: str
    owner_id: str
    status: str
    total_records: int
    processed_records: int
    error_records: int
    duplicate_warnings: int
    error_report: dict | None = None
    processing_notes: str | None = None
    created_at: dt.datetime | None = None
    updated_at: dt.datetime | None = None
    completed_at: dt.datetime | None = None
    rollback_at: dt.datetime | None = None
    rollback_by: str | None = None


class UpdateBatchStatusRequest(BaseModel):
    status: str
    processing_notes: str | None = None


class RollbackResponse(BaseModel):
    success: bool
    staging_nodes_deleted: int


class DuplicateMatchSchema(BaseModel):
    target_id: str
    target_type: Literal["entity", "node", "staging"]
    target_name: str
    similarity_score: float
    match_reasons: list[str]
    confidence_level: Literal["high", "medium", "low"]
    recommended_action: Literal["merge", "review", "separate"]


class DeduplicationResultSchema(BaseModel):
    staging_id: str
    has_duplicates: bool
    duplicate_count: int
    matches: list[DuplicateMatchSchema]
    overall_confidence: float
    suggested_entity_id: str | None = None
    suggested_merge_action: Literal["create_new", "merge_existing", "manual_review"]
    lookup_failed: bool = False


class DecisionSchema(BaseModel):
    staging_id: str
    action: Literal["approve_new", "merge_with_entity", "merge_with_node", "reject"]
    target_id: str | None = None
    manual_edits: dict[str, Any] | None = None


class DecisionsRequest(BaseModel):
    decisions: list[DecisionSchema] = Field(min_length=1)


class DecisionErrorSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    staging_id: str
    kind: str
    error: str


class DecisionsResponse(BaseModel):
    processed: int
    errors: list[DecisionErrorSchema]

"""Initial schema: registry, batches, staging rows and audit log.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa

revision = "001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "entities",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("owner_id", sa.String(), nullable=False),
        sa.Column("master_entity_name", sa.String(), nullable=False),
        sa.Column("alternate_names", sa.JSON(), nullable=False),
        sa.Column("website", sa.String(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.CheckConstraint("master_entity_name <> ''", name="entity_name_not_empty"),
    )
    op.create_index("ix_entities_owner_id", "entities", ["owner_id"])

    op.create_table(
        "nodes",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("owner_id", sa.String(), nullable=False),
        sa.Column("node_name", sa.String(), nullable=False),
        sa.Column("entity_id", sa.String(), sa.ForeignKey("entities.id"), nullable=False),
        sa.Column("entity_name", sa.String(), nullable=False),
        sa.Column("node_category", sa.String(), nullable=False),
        sa.Column("direction", sa.String(), nullable=False),
        sa.Column("connects_to", sa.JSON(), nullable=False),
        sa.Column("protocols_supported", sa.JSON(), nullable=False),
        sa.Column("data_types_supported", sa.JSON(), nullable=False),
        sa.Column("node_aliases", sa.JSON(), nullable=False),
        sa.Column("website", sa.String(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("last_verified", sa.DateTime(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_nodes_owner_id", "nodes", ["owner_id"])
    op.create_index("ix_nodes_entity_id", "nodes", ["entity_id"])

    op.create_table(
        "batch_logs",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("batch_name", sa.String(), nullable=False),
        sa.Column("source_type", sa.String(), nullable=False),
        sa.Column("created_by", sa.String(), nullable=False),
        sa.Column("owner_id", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("total_records", sa.Integer(), nullable=False),
        sa.Column("processed_records", sa.Integer(), nullable=False),
        sa.Column("error_records", sa.Integer(), nullable=False),
        sa.Column("duplicate_warnings", sa.Integer(), nullable=False),
        sa.Column("error_report", sa.JSON(), nullable=True),
        sa.Column("processing_notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("rollback_at", sa.DateTime(), nullable=True),
        sa.Column("rollback_by", sa.String(), nullable=True),
        sa.CheckConstraint(
            "status IN ('pending', 'processed', 'error', 'cancelled', 'rolled_back')",
            name="valid_batch_status",
        ),
    )
    op.create_index("ix_batch_logs_owner_id", "batch_logs", ["owner_id"])

    op.create_table(
        "staging_nodes",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("batch_id", sa.String(), sa.ForeignKey("batch_logs.id"), nullable=False),
        sa.Column("owner_id", sa.String(), nullable=False),
        sa.Column("row_number", sa.Integer(), nullable=False),
        sa.Column("node_name", sa.String(), nullable=False),
        sa.Column("entity_name", sa.String(), nullable=False),
        sa.Column("website", sa.String(), nullable=False),
        sa.Column("node_category", sa.String(), nullable=False),
        sa.Column("direction", sa.String(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=False),
        sa.Column("connect_targets", sa.JSON(), nullable=False),
        sa.Column("protocols_supported", sa.JSON(), nullable=False),
        sa.Column("data_types_supported", sa.JSON(), nullable=False),
        sa.Column("extracted_tags", sa.JSON(), nullable=False),
        sa.Column("original_data", sa.JSON(), nullable=False),
        sa.Column("confidence_score", sa.Float(), nullable=False),
        sa.Column("duplicate_matches", sa.JSON(), nullable=False),
        sa.Column("lookup_failed", sa.Boolean(), nullable=False),
        sa.Column("duplicate_analysis", sa.JSON(), nullable=True),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("committed_entity_id", sa.String(), nullable=True),
        sa.Column("committed_node_id", sa.String(), nullable=True),
        sa.Column("decided_by", sa.String(), nullable=True),
        sa.Column("decided_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.CheckConstraint(
            "status IN ('pending', 'reviewed', 'approved', 'rejected', 'merged')",
            name="valid_staging_status",
        ),
    )
    op.create_index("ix_staging_nodes_batch_id", "staging_nodes", ["batch_id"])
    op.create_index("ix_staging_nodes_owner_id", "staging_nodes", ["owner_id"])

    op.create_table(
        "audit_log",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("action", sa.String(), nullable=False),
        sa.Column("owner_id", sa.String(), nullable=False, server_default="anonymous"),
        sa.Column("resource_type", sa.String(), nullable=False),
        sa.Column("resource_id", sa.String(), nullable=True),
        sa.Column("details", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("CURRENT_TIMESTAMP")),
    )


def downgrade() -> None:
    op.drop_table("audit_log")
    op.drop_index("ix_staging_nodes_owner_id")
    op.drop_index("ix_staging_nodes_batch_id")
    op.drop_table("staging_nodes")
    op.drop_index("ix_batch_logs_owner_id")
    op.drop_table("batch_logs")
    op.drop_index("ix_nodes_entity_id")
    op.drop_index("ix_nodes_owner_id")
    op.drop_table("nodes")
    op.drop_index("ix_entities_owner_id")
    op.drop_table("entities")

"""CLI entry point: python -m node_intake.cli {import,analyze,rollback,status}

Results are printed to stdout as JSON; logs go to stderr.
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from node_intake.api.schemas import (
    BatchLogSchema,
    RowValidationErrorSchema,
    StagingNodeSchema,
)
from node_intake.audit.sink import SqlAuditSink
from node_intake.batches.lifecycle import BatchManager
from node_intake.config.settings import Settings, get_settings
from node_intake.db.session import get_session_factory
from node_intake.errors import NodeIntakeError, ParseError
from node_intake.ingestion.batch_processor import BatchProcessor
from node_intake.logging_config import configure_logging
from node_intake.matching.analysis import DeduplicationAnalyzer
from node_intake.matching.config import load_dedup_config
from node_intake.registry.reader import SqlRegistryReader
from node_intake.results import OperationError


def _outcome(outcome: OperationError) -> tuple[int, dict]:
    return 1, {"kind": outcome.kind.value, "error": outcome.message}


async def run_command(
    args: argparse.Namespace,
    session_factory: async_sessionmaker[AsyncSession],
    settings: Settings,
) -> tuple[int, dict | list]:
    """Execute one parsed command; returns ``(exit_code, payload)``."""
    log = structlog.get_logger()
    audit = SqlAuditSink(session_factory)
    registry = SqlRegistryReader(session_factory)
    manager = BatchManager(session_factory, audit, list_limit=settings.batch_list_limit)

    if args.command == "import":
        processor = BatchProcessor(
            session_factory,
            registry,
            audit,
            max_concurrency=settings.max_concurrency,
            timeout_seconds=settings.batch_timeout_seconds,
        )
        csv_content = Path(args.file).read_text(encoding="utf-8")
        try:
            result = await processor.process_batch(csv_content, args.name, args.owner)
        except ParseError as exc:
            return 1, {"error": str(exc), "batch_id": exc.batch_id}
        log.info("import_complete", batch_id=result.batch_id, file=args.file)
        return 0, {
            "batch_id": result.batch_id,
            "total_rows": result.total_rows,
            "valid_rows": result.valid_rows,
            "invalid_rows": result.invalid_rows,
            "duplicate_warnings": result.duplicate_warnings,
            "lookup_failures": result.lookup_failures,
            "validation_errors": [
                RowValidationErrorSchema.model_validate(e).model_dump(mode="json")
                for e in result.validation_errors
            ],
            "staging_nodes": [
                StagingNodeSchema.model_validate(n).model_dump(mode="json") for n in result.staging_nodes
            ],
        }

    if args.command == "analyze":
        analyzer = DeduplicationAnalyzer(
            session_factory, registry, load_dedup_config(settings.dedup_config_path)
        )
        results = await analyzer.analyze_deduplication(args.batch_id, args.owner)
        if isinstance(results, OperationError):
            return _outcome(results)
        return 0, [r.to_dict() for r in results]

    if args.command == "rollback":
        rollback = await manager.rollback_batch(args.batch_id, args.owner)
        if isinstance(rollback, OperationError):
            return _outcome(rollback)
        return 0, {"success": rollback.success, "staging_nodes_deleted": rollback.staging_nodes_deleted}

    batch = await manager.get_batch_status(args.batch_id)
    if isinstance(batch, OperationError):
        return _outcome(batch)
    return 0, BatchLogSchema.model_validate(batch).model_dump(mode="json")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="node_intake.cli",
        description="Node Intake CLI",
    )
    subparsers = parser.add_subparsers(dest="command")

    import_parser = subparsers.add_parser("import", help="Stage a CSV file as a new batch")
    import_parser.add_argument("file", type=str, help="Path to the CSV file")
    import_parser.add_argument("--owner", required=True, help="Owner id the batch belongs to")
    import_parser.add_argument("--name", default=None, help="Batch name (default: Import_YYYY-MM-DD)")

    analyze_parser = subparsers.add_parser("analyze", help="Run duplicate analysis for a batch")
    analyze_parser.add_argument("batch_id")
    analyze_parser.add_argument("--owner", required=True)

    rollback_parser = subparsers.add_parser("rollback", help="Roll back a batch")
    rollback_parser.add_argument("batch_id")
    rollback_parser.add_argument("--owner", required=True)

    status_parser = subparsers.add_parser("status", help="Show a batch log")
    status_parser.add_argument("batch_id")

    return parser


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    settings = get_settings()
    configure_logging(json_output=settings.log_json, log_level=settings.log_level)

    try:
        exit_code, payload = asyncio.run(run_command(args, get_session_factory(), settings))
    except NodeIntakeError as exc:
        exit_code, payload = 1, {"error": str(exc), "batch_id": getattr(exc, "batch_id", None)}

    print(json.dumps(payload, indent=2, default=str))
    sys.exit(exit_code)


if __name__ == "__main__":
    main()

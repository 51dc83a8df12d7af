"""Tests for the command-line interface."""

from pathlib import Path

import pytest

from node_intake.cli.__main__ import build_parser, run_command
from node_intake.config.settings import Settings

from conftest import CSV_HEADER, OWNER


@pytest.fixture
def settings() -> Settings:
    return Settings(max_concurrency=2)


@pytest.fixture
def csv_file(tmp_path: Path, sample_csv: str) -> Path:
    path = tmp_path / "nodes.csv"
    path.write_text(sample_csv, encoding="utf-8")
    return path


async def _run(argv: list[str], factory, settings: Settings):
    return await run_command(build_parser().parse_args(argv), factory, settings)


async def test_import_analyze_status_rollback(csv_file, test_session_factory, settings, seeded_registry) -> None:
    code, payload = await _run(["import", str(csv_file), "--owner", OWNER, "--name", "cli"], test_session_factory, settings)
    assert code == 0
    assert payload["valid_rows"] == 2
    assert payload["validation_errors"][0]["row"] == 4
    batch_id = payload["batch_id"]

    code, payload = await _run(["analyze", batch_id, "--owner", OWNER], test_session_factory, settings)
    assert code == 0
    assert len(payload) == 2
    assert payload[0]["suggested_merge_action"] in ("create_new", "merge_existing", "manual_review")

    code, payload = await _run(["status", batch_id], test_session_factory, settings)
    assert code == 0
    assert payload["status"] == "processed"
    assert payload["batch_name"] == "cli"

    code, payload = await _run(["rollback", batch_id, "--owner", OWNER], test_session_factory, settings)
    assert code == 0
    assert payload == {"success": True, "staging_nodes_deleted": 2}

    code, payload = await _run(["rollback", batch_id, "--owner", OWNER], test_session_factory, settings)
    assert code == 1
    assert payload["kind"] == "conflict"


async def test_import_parse_error(tmp_path: Path, test_session_factory, settings) -> None:
    path = tmp_path / "empty.csv"
    path.write_text(CSV_HEADER, encoding="utf-8")

    code, payload = await _run(["import", str(path), "--owner", OWNER], test_session_factory, settings)
    assert code == 1
    assert payload["batch_id"] is not None
    assert "at least one data row" in payload["error"]


async def test_status_unknown_batch(test_session_factory, settings) -> None:
    code, payload = await _run(["status", "nope"], test_session_factory, settings)
    assert code == 1
    assert payload["kind"] == "not_found"


def test_owner_is_required_for_import() -> None:
    with pytest.raises(SystemExit):
        build_parser().parse_args(["import", "nodes.csv"])

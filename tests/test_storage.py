"""Tests for the default file-backed report sink."""

import json

import pytest

from errors import PersistenceError
from storage import FileReportSink, ReportRecord


def record(run_id="run-1"):
    return ReportRecord(
        run_id=run_id,
        final_report="# Repair Estimate Summary\n",
        property_address="123 Main St",
        inspection_date="2024-05-01",
    )


@pytest.mark.asyncio
async def test_writes_markdown_and_metadata(tmp_path):
    sink = FileReportSink(tmp_path / "reports")

    await sink.save(record())

    report_path, meta_path = sink.paths_for("run-1")
    assert report_path == tmp_path / "reports" / "run-1.md"
    assert report_path.read_text(encoding="utf-8") == "# Repair Estimate Summary\n"

    meta = json.loads(meta_path.read_text(encoding="utf-8"))
    assert meta["run_id"] == "run-1"
    assert meta["status"] == "completed"
    assert meta["report_file"] == "run-1.md"
    assert meta["property_address"] == "123 Main St"
    assert meta["updated_at"]
    assert "final_report" not in meta


@pytest.mark.asyncio
async def test_unwritable_output_dir_raises_persistence_error(tmp_path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("regular file", encoding="utf-8")
    sink = FileReportSink(blocker / "reports")

    with pytest.raises(PersistenceError, match="run-2"):
        await sink.save(record("run-2"))

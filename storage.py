"""
Where finished reports go.

The pipeline only ever writes to its sink, through one call:

    await sink.save(record)

Anything with that coroutine method works (a database, an API client).
FileReportSink is the default and just writes the Markdown plus a small
JSON metadata file into the output directory.
"""

import asyncio
import json
import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path

from config import OUTPUT_DIR
from errors import PersistenceError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReportRecord:
    run_id: str
    final_report: str
    property_address: str
    inspection_date: str
    status: str = "completed"


class FileReportSink:
    def __init__(self, output_dir=OUTPUT_DIR):
        self.output_dir = Path(output_dir)

    def paths_for(self, run_id):
        return self.output_dir / f"{run_id}.md", self.output_dir / f"{run_id}.json"

    def _write(self, record):
        report_path, meta_path = self.paths_for(record.run_id)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        report_path.write_text(record.final_report, encoding="utf-8")

        meta = asdict(record)
        del meta["final_report"]
        meta["report_file"] = report_path.name
        meta["updated_at"] = datetime.now(timezone.utc).isoformat()
        meta_path.write_text(json.dumps(meta, indent=2), encoding="utf-8")
        return report_path

    async def save(self, record):
        try:
            report_path = await asyncio.to_thread(self._write, record)
        except OSError as exc:
            raise PersistenceError(f"could not write report for {record.run_id}: {exc}") from exc
        logger.info("Saved report for %s to %s", record.run_id, report_path)

"""
Progress reporting for a single run.

The caller hands in a plain callable (the "progress sink") that receives
ProgressEvent objects as the run moves along -- the CLI prints them, a UI
would push them to the screen. The sink is fire-and-forget: if it blows
up we log it and keep going, the pipeline state doesn't care.

Nodes don't talk to the sink directly. Each node opens a StageLog, which
appends to that node's slice of progress_log and forwards the same line
to the sink, so the log and the event stream never drift apart.
"""

import logging
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProgressEvent:
    message: str
    is_complete: bool = False
    final_report: Optional[str] = None

    def to_dict(self):
        """Wire format for hosts expecting {message, isComplete, finalReport}."""
        data = {"message": self.message, "isComplete": self.is_complete}
        if self.final_report is not None:
            data["finalReport"] = self.final_report
        return data


class ProgressReporter:
    def __init__(self, sink=None, run_id=""):
        self.sink = sink
        self.run_id = run_id
        self.completed = False

    def send(self, message):
        if self.completed:
            logger.warning("[%s] Progress after completion dropped: %s", self.run_id, message)
            return
        self._emit(ProgressEvent(message))

    def complete(self, message, final_report=""):
        """Sends the single terminal event for the run."""
        if self.completed:
            logger.warning("[%s] Run already completed, ignoring: %s", self.run_id, message)
            return
        self.completed = True
        self._emit(ProgressEvent(message, is_complete=True, final_report=final_report or ""))

    def stage_log(self):
        return StageLog(self)

    def _emit(self, event):
        logger.info("[%s] %s", self.run_id, event.message)
        if self.sink is None:
            return
        try:
            self.sink(event)
        except Exception:
            logger.exception("[%s] Progress sink failed on %r", self.run_id, event.message)


class StageLog:
    """Log lines written by one node during one run."""

    def __init__(self, reporter):
        self.reporter = reporter
        self.entries = []

    def add(self, message):
        self.entries.append(message)
        self.reporter.send(message)

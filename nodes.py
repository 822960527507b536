"""
Node functions for the LangGraph report pipeline.

Each node takes the shared state plus a NodeContext (the per-run clients
and progress reporter), does its one job, and returns only the keys it
wants to update. Kept these as plain functions instead of classes --
easier to test and reason about. run.build_graph() binds the context.

No node raises. Every expected failure (bad PDF, LLM error, search
error) becomes a progress-log line and a partial update, and the router
sends the run on to a state that can finish it.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

from errors import DocumentError, InferenceError
from extraction import extract_findings, extract_text
from progress import ProgressReporter
from report import compile_report
from research import ResearchSettings, research_findings

logger = logging.getLogger(__name__)


class Stage(str, Enum):
    START = "start"
    EXTRACT_TEXT = "extract_text"
    EXTRACT_FINDINGS = "extract_findings"
    RESEARCH_FINDINGS = "research_findings"
    COMPILE_REPORT = "compile_report"
    FINISH = "finish"


@dataclass
class NodeContext:
    reporter: ProgressReporter
    llm: Optional[Any] = None
    search: Optional[Any] = None
    research_settings: ResearchSettings = field(default_factory=ResearchSettings)
    sleep: Callable = asyncio.sleep


async def start_node(state, ctx):
    log = ctx.reporter.stage_log()
    log.add("Starting report generation...")
    return {"progress_log": log.entries}


async def extract_text_node(state, ctx):
    """Pulls plain text out of the PDF buffer.

    A missing or unreadable PDF is logged once and leaves extracted_text
    empty; extract_findings then has nothing to analyze and says so.
    """
    log = ctx.reporter.stage_log()
    try:
        text = await extract_text(state.get("document_buffer"))
    except DocumentError as exc:
        logger.error("PDF parsing error: %s", exc)
        log.add(f"Error parsing PDF: {exc}")
        return {"extracted_text": "", "progress_log": log.entries}

    log.add("Successfully extracted text from PDF.")
    return {"extracted_text": text, "progress_log": log.entries}


async def extract_findings_node(state, ctx):
    """Uses the LLM to get the address, date and the list of issues."""
    log = ctx.reporter.stage_log()
    log.add("Analyzing report for key details and issues...")

    text = state.get("extracted_text") or ""
    if not text.strip():
        log.add("Error: No text extracted from PDF to analyze.")
        return {"progress_log": log.entries}

    if ctx.llm is None:
        log.add("Error analyzing report with AI: language model is not configured.")
        return {"progress_log": log.entries}

    try:
        extraction = await extract_findings(text, ctx.llm)
    except InferenceError as exc:
        logger.error("Error in extract_findings: %s", exc)
        log.add(f"Error analyzing report with AI: {exc}")
        return {"progress_log": log.entries}

    findings = extraction.to_findings()
    log.add(f"Successfully identified {len(findings)} issues.")
    if not findings:
        log.add("AI analysis did not find any specific issues in the report.")

    return {
        "property_address": extraction.property_address,
        "inspection_date": extraction.inspection_date,
        "findings": findings,
        "progress_log": log.entries,
    }


async def research_node(state, ctx):
    log = ctx.reporter.stage_log()
    research = await research_findings(
        state.get("findings") or [],
        state.get("property_address"),
        search=ctx.search,
        llm=ctx.llm,
        log=log,
        settings=ctx.research_settings,
        sleep=ctx.sleep,
    )
    return {"finding_research": research, "progress_log": log.entries}


async def compile_report_node(state, ctx):
    log = ctx.reporter.stage_log()
    report = compile_report(state)
    log.add("Final report compiled.")
    return {"final_report": report, "progress_log": log.entries}


async def finish_node(state, ctx):
    log = ctx.reporter.stage_log()
    log.add("Finished report generation.")
    return {"progress_log": log.entries}


def should_research(state):
    """Router after extract_findings: research if there is anything to research.

    With no findings the run goes straight to finish and no report is
    compiled at all.
    """
    if state.get("findings"):
        return Stage.RESEARCH_FINDINGS.value
    return Stage.FINISH.value

"""
Main entry point for the inspection report repair estimator.

Reads a home inspection PDF, runs it through the LangGraph pipeline
(start -> extract_text -> extract_findings -> research_findings ->
compile_report -> finish), saves the Markdown estimate and prints it.

Usage:
  python run.py path/to/inspection.pdf
  python run.py path/to/inspection.pdf --run-id abc123 --output-dir reports/
"""

import argparse
import asyncio
import logging
import time
import uuid
from pathlib import Path

from langgraph.graph import END, START, StateGraph

from config import OUTPUT_DIR
from llm import default_llm_client
from nodes import (
    NodeContext,
    Stage,
    compile_report_node,
    extract_findings_node,
    extract_text_node,
    finish_node,
    research_node,
    should_research,
    start_node,
)
from progress import ProgressReporter
from research import ResearchSettings
from search import default_search_client
from state import PipelineState, initial_state
from storage import FileReportSink, ReportRecord

logger = logging.getLogger(__name__)

NODES = {
    Stage.START: start_node,
    Stage.EXTRACT_TEXT: extract_text_node,
    Stage.EXTRACT_FINDINGS: extract_findings_node,
    Stage.RESEARCH_FINDINGS: research_node,
    Stage.COMPILE_REPORT: compile_report_node,
    Stage.FINISH: finish_node,
}


def _bind(node, ctx):
    async def run_node(state):
        return await node(state, ctx)

    run_node.__name__ = node.__name__
    return run_node


def build_graph(ctx):
    """Sets up the pipeline graph for one run.

    The only branch is after extract_findings: no findings means there is
    nothing to research or report on, so the run skips to finish.
    """
    graph = StateGraph(PipelineState)

    for stage, node in NODES.items():
        graph.add_node(stage.value, _bind(node, ctx))

    graph.add_edge(START, Stage.START.value)
    graph.add_edge(Stage.START.value, Stage.EXTRACT_TEXT.value)
    graph.add_edge(Stage.EXTRACT_TEXT.value, Stage.EXTRACT_FINDINGS.value)
    graph.add_conditional_edges(
        Stage.EXTRACT_FINDINGS.value,
        should_research,
        {
            Stage.RESEARCH_FINDINGS.value: Stage.RESEARCH_FINDINGS.value,
            Stage.FINISH.value: Stage.FINISH.value,
        },
    )
    graph.add_edge(Stage.RESEARCH_FINDINGS.value, Stage.COMPILE_REPORT.value)
    graph.add_edge(Stage.COMPILE_REPORT.value, Stage.FINISH.value)
    graph.add_edge(Stage.FINISH.value, END)

    return graph.compile()


async def _save_report(sink, final_state, run_id, reporter):
    record = ReportRecord(
        run_id=run_id,
        final_report=final_state["final_report"],
        property_address=final_state.get("property_address", ""),
        inspection_date=final_state.get("inspection_date", ""),
    )
    try:
        await sink.save(record)
    except Exception as exc:
        # the analysis itself succeeded, so this doesn't fail the run
        logger.exception("Failed to save report for %s", run_id)
        reporter.send(f"Failed to save report: {exc}")
        return
    reporter.send("Report saved successfully.")


async def generate_report(document, run_id, on_progress=None, *, sink=None, llm=None,
                          search=None, settings=None, sleep=asyncio.sleep):
    """Runs the whole pipeline for one PDF.

    Progress goes to on_progress as ProgressEvents; the last event always
    has is_complete=True and carries the final report ("" if none was
    produced). Clients not passed in are built from config and closed
    when the run ends. Returns the final pipeline state.
    """
    started = time.monotonic()
    reporter = ProgressReporter(on_progress, run_id)
    logger.info("Starting report generation for run %s", run_id)

    owned = []
    if llm is None:
        llm = default_llm_client()
        if llm is not None:
            owned.append(llm)
    if search is None:
        search = default_search_client()
        owned.append(search)
    if sink is None:
        sink = FileReportSink()

    ctx = NodeContext(
        reporter=reporter,
        llm=llm,
        search=search,
        research_settings=settings or ResearchSettings(),
        sleep=sleep,
    )

    final_state = initial_state(document)
    try:
        graph = build_graph(ctx)
        final_state = await graph.ainvoke(
            initial_state(document), config={"configurable": {"thread_id": run_id}}
        )

        final_report = final_state.get("final_report") or ""
        if final_report:
            await _save_report(sink, final_state, run_id, reporter)
        else:
            logger.warning("No final report was generated for run %s", run_id)
            reporter.send("Could not generate final report.")

        duration = time.monotonic() - started
        logger.info("Total report generation took %.1fs for run %s", duration, run_id)
        reporter.complete(f"Report generation complete ({duration:.1f}s total)", final_report)
    except Exception as exc:
        logger.exception("Error during report generation for run %s", run_id)
        reporter.complete(f"An error occurred: {exc}")
    finally:
        for client in owned:
            try:
                await client.aclose()
            except Exception:
                logger.exception("Failed to close %s for run %s", type(client).__name__, run_id)

    return final_state


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Generate a repair cost estimate from a home inspection report PDF"
    )
    parser.add_argument("report", type=Path, help="path to the inspection report PDF")
    parser.add_argument("--run-id", help="identifier for this run (default: random)")
    parser.add_argument("--output-dir", type=Path, default=OUTPUT_DIR)
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    args = parser.parse_args(argv)

    # progress is printed below, so only warnings go to the log by default
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # the OpenAI SDK logs every request at INFO through httpx
    logging.getLogger("httpx").setLevel(logging.WARNING)

    if not args.report.is_file():
        print(f"No PDF found at {args.report}")
        raise SystemExit(1)

    run_id = args.run_id or uuid.uuid4().hex[:12]
    sink = FileReportSink(args.output_dir)

    def print_progress(event):
        print(f"  {event.message}")

    print(f"Generating repair estimate for {args.report.name} (run {run_id})\n")
    final_state = asyncio.run(
        generate_report(args.report.read_bytes(), run_id, print_progress, sink=sink)
    )

    report = final_state.get("final_report")
    if not report:
        print("\nNo report was generated.")
        raise SystemExit(1)

    print(f"\nReport saved to {sink.paths_for(run_id)[0]}")
    print("\n" + "=" * 60)
    print("REPAIR ESTIMATE")
    print("=" * 60)
    print(report)


if __name__ == "__main__":
    main()

"""
Research step: a web search and an LLM cost estimate for every finding.

Runs in two phases so each external service gets its own rate limit:

  Phase 1 (search)    -- one Brave query per finding, small batches with a
                         1s gap, because Brave caps requests per second
  Phase 2 (synthesis) -- one LLM call per finding over its search results,
                         bigger batches with a shorter gap

Batches are "run everything, wait for all of it, sleep, next batch" rather
than a semaphore. The search API limit is a fixed time window, so capping
in-flight requests alone would still burst past it.

Nothing in here raises out to the graph. A failed search or a bad LLM
response turns into a low-confidence placeholder for that one finding,
and the result map always ends up with exactly one entry per finding.
"""

import asyncio
import logging
import math
import time
from dataclasses import dataclass, field
from typing import Optional

from config import (
    SEARCH_BATCH_DELAY,
    SEARCH_BATCH_SIZE,
    SEARCH_RESULTS_CHAR_LIMIT,
    SYNTHESIS_BATCH_DELAY,
    SYNTHESIS_BATCH_SIZE,
)
from errors import InferenceError, SearchError
from schemas import SynthesisResponse
from state import Finding, ResearchResult

logger = logging.getLogger(__name__)

SYNTHESIS_SYSTEM_PROMPT = """You are an expert in home repair cost estimation. Based on the issue description, context from the report, and web search results, output a JSON object with the following keys:
- "summary": A brief explanation of the issue and recommended action.
- "estimatedCostRange": A string representing the likely cost range, e.g., "$500 - $2000".
- "contractorType": The type of professional needed, e.g., "Plumber".
- "confidence": One of "High", "Medium", or "Low" based on the reliability of the information.
- "severity": "Low" (cosmetic, no immediate action), "Medium" (functional, plan within months), or "High" (urgent safety/structural, address ASAP) based on description, context, cost, safety risks, and urgency.
- "localContractors": An array of objects, where each object has "name" and "url" keys. For each contractor you identify, ALWAYS include the "url" from the corresponding search result."""


@dataclass(frozen=True)
class BatchPolicy:
    size: int
    delay: float  # seconds to sleep between batches

    def __post_init__(self):
        if self.size < 1:
            raise ValueError(f"batch size must be at least 1, got {self.size}")
        if self.delay < 0:
            raise ValueError(f"batch delay can't be negative, got {self.delay}")


@dataclass(frozen=True)
class ResearchSettings:
    search_batch: BatchPolicy = BatchPolicy(SEARCH_BATCH_SIZE, SEARCH_BATCH_DELAY)
    synthesis_batch: BatchPolicy = BatchPolicy(SYNTHESIS_BATCH_SIZE, SYNTHESIS_BATCH_DELAY)
    search_results_char_limit: int = SEARCH_RESULTS_CHAR_LIMIT


@dataclass
class SearchOutcome:
    """What phase 1 found for one finding. error is set when the search failed."""

    finding: Finding
    query: str
    results: list = field(default_factory=list)
    error: Optional[str] = None

    @property
    def source_links(self):
        return [r.link for r in self.results]


def degraded_result(summary, sources=()):
    """Placeholder for a finding we couldn't research properly."""
    return ResearchResult(
        summary=summary,
        estimated_cost="N/A",
        confidence="Low",
        contractor_type="Unknown",
        severity="Unknown",
        sources=list(sources),
        local_contractors=[],
    )


async def process_in_batches(items, policy, worker, fallback, on_batch_start=None,
                             on_batch_end=None, sleep=asyncio.sleep):
    """Runs worker over items in sequential, concurrent batches.

    Each batch is awaited in full before the delay and the next batch.
    If a worker raises, fallback(item, exc) supplies its result so one
    bad item never takes down its siblings. Results come back in input
    order.
    """
    results = []
    total_batches = math.ceil(len(items) / policy.size)

    for start in range(0, len(items), policy.size):
        batch = items[start:start + policy.size]
        batch_index = start // policy.size + 1
        if on_batch_start:
            on_batch_start(batch_index, total_batches, start, batch)

        logger.info("Processing batch %d of %d (%d items)", batch_index, total_batches, len(batch))
        outcomes = await asyncio.gather(*(worker(item) for item in batch), return_exceptions=True)
        for item, outcome in zip(batch, outcomes):
            if isinstance(outcome, Exception):
                logger.error("Worker failed on %r", item, exc_info=outcome)
                outcome = fallback(item, outcome)
            elif isinstance(outcome, BaseException):
                raise outcome
            results.append(outcome)

        if on_batch_end:
            on_batch_end(batch_index, total_batches)

        # no delay after the last batch
        if start + policy.size < len(items):
            await sleep(policy.delay)

    return results


def build_search_query(finding, property_address):
    return f"cost to repair {finding.description} in {property_address}"


async def search_finding(finding, property_address, search, log):
    query = build_search_query(finding, property_address)
    log.add(f"Searching for: {query}")
    try:
        results = await search.search(query)
    except SearchError as exc:
        logger.warning("Search failed for %s: %s", finding.id, exc)
        log.add(f"Search failed for {finding.id}: {exc}")
        return SearchOutcome(finding, query, error=str(exc))

    log.add(f"Found {len(results)} results for {finding.id}")
    return SearchOutcome(finding, query, results=results)


def format_search_results(results, char_limit=SEARCH_RESULTS_CHAR_LIMIT):
    text = "\n\n".join(
        f"[Result {i}]\nTitle: {r.title}\nURL: {r.link}\nSnippet: {r.snippet}"
        for i, r in enumerate(results, start=1)
    )
    return text[:char_limit]


def build_synthesis_prompt(outcome, char_limit=SEARCH_RESULTS_CHAR_LIMIT):
    finding = outcome.finding
    context = finding.context or "No specific context was extracted."
    results_text = format_search_results(outcome.results, char_limit) or "No search results were found."
    return (
        f"Issue: {finding.description}\n"
        "Context from Report:\n"
        f'"""\n{context}\n"""\n\n'
        "Web Search Results:\n"
        f'"""\n{results_text}\n"""\n\n'
        "IMPORTANT: When extracting contractors, always map each contractor to "
        "the URL of the search result where you found them. Every contractor "
        "should have a URL from one of the search results above."
    )


async def synthesize_finding(outcome, llm, log, char_limit=SEARCH_RESULTS_CHAR_LIMIT):
    """Returns (finding_id, ResearchResult) for one phase 1 outcome."""
    finding = outcome.finding

    if outcome.error is not None:
        log.add(f"Skipped estimate for {finding.id}: search failed")
        return finding.id, degraded_result(
            f"Research failed: {outcome.error}", ["Error occurred during research"]
        )

    try:
        response = await llm.complete_json(
            SYNTHESIS_SYSTEM_PROMPT,
            build_synthesis_prompt(outcome, char_limit),
            SynthesisResponse,
        )
    except InferenceError as exc:
        logger.warning("Synthesis failed for %s: %s", finding.id, exc)
        log.add(f"Estimate failed for {finding.id}: {exc}")
        return finding.id, degraded_result(f"Synthesis failed: {exc}", outcome.source_links)

    result = response.to_research(outcome.source_links)
    log.add(f"Estimated {finding.id}: {result.severity} severity, {result.estimated_cost}")
    return finding.id, result


async def _search_phase(findings, property_address, search, log, policy, sleep):
    def on_start(batch_index, total, start, batch):
        log.add(
            f"Searching batch {batch_index} of {total} "
            f"(issues {start + 1}-{start + len(batch)})"
        )

    def on_end(batch_index, total):
        log.add(f"Search batch {batch_index} of {total} complete")

    def fallback(finding, exc):
        log.add(f"Search failed for {finding.id}: {exc}")
        return SearchOutcome(
            finding, build_search_query(finding, property_address), error=str(exc)
        )

    return await process_in_batches(
        findings,
        policy,
        lambda finding: search_finding(finding, property_address, search, log),
        fallback,
        on_batch_start=on_start,
        on_batch_end=on_end,
        sleep=sleep,
    )


async def _synthesis_phase(outcomes, llm, log, policy, char_limit, sleep):
    def on_start(batch_index, total, start, batch):
        log.add(f"Synthesizing batch {batch_index} of {total} with AI")

    def on_end(batch_index, total):
        log.add(f"Synthesis batch {batch_index} of {total} complete")

    def fallback(outcome, exc):
        log.add(f"Estimate failed for {outcome.finding.id}: {exc}")
        return outcome.finding.id, degraded_result(f"Synthesis failed: {exc}", outcome.source_links)

    return await process_in_batches(
        outcomes,
        policy,
        lambda outcome: synthesize_finding(outcome, llm, log, char_limit),
        fallback,
        on_batch_start=on_start,
        on_batch_end=on_end,
        sleep=sleep,
    )


async def research_findings(findings, property_address, *, search, llm, log,
                            settings=None, sleep=asyncio.sleep):
    """Researches every finding and returns {finding_id: ResearchResult}.

    search and llm may be None (or search unconfigured), in which case no
    network call is made and every finding gets a skipped placeholder.
    The returned map has exactly one entry per finding no matter what
    failed along the way.
    """
    settings = settings or ResearchSettings()
    research = {}

    if search is None or not search.configured:
        logger.warning("Brave Search API key is not set. Skipping web research.")
        log.add("Warning: Brave Search API key not set. Skipping web research.")
        for finding in findings:
            research[finding.id] = degraded_result(
                "Web research was skipped because the search API key was not configured.",
                ["Local configuration"],
            )
        return research

    if llm is None:
        logger.warning("No LLM client configured. Skipping research.")
        log.add("Warning: language model not configured. Skipping research.")
        for finding in findings:
            research[finding.id] = degraded_result(
                "Research was skipped because the language model was not configured.",
                ["Local configuration"],
            )
        return research

    start_time = time.monotonic()
    try:
        log.add("Phase 1: Starting parallel search for all issues...")
        outcomes = await _search_phase(
            findings, property_address, search, log, settings.search_batch, sleep
        )
        log.add(f"Phase 1 complete: Retrieved search results for {len(outcomes)} issues")

        log.add("Phase 2: Starting AI synthesis for all results...")
        synthesized = await _synthesis_phase(
            outcomes, llm, log, settings.synthesis_batch,
            settings.search_results_char_limit, sleep,
        )
        for finding_id, result in synthesized:
            research.setdefault(finding_id, result)
        log.add(f"Phase 2 complete: AI synthesis finished for {len(synthesized)} issues")
    except Exception as exc:
        logger.exception("Research process failed")
        log.add(f"Failed to complete research process: {exc}")

    for finding in findings:
        if finding.id not in research:
            research[finding.id] = degraded_result("Research did not complete for this issue.")

    duration = time.monotonic() - start_time
    log.add(f"Completed research for {len(findings)} issues in {duration:.1f}s")
    logger.info("Research for %d issues took %.1fs", len(findings), duration)
    return research

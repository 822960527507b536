"""Pytest configuration and shared fixtures.

Provides reusable test doubles for:
- The LLM client (scripted JSON payloads per call)
- The Brave search client (canned results, per-query failures)
- The progress sink and report sink
- Sample findings
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from errors import SearchError
from progress import ProgressReporter
from research import BatchPolicy, ResearchSettings
from schemas import ExtractionResponse
from search import SearchResult
from state import Finding


# =============================================================================
# Fake clients
# =============================================================================


class FakeLLM:
    """Stands in for LLMClient.

    responder(system_prompt, user_prompt, response_model) returns the JSON
    payload (a dict) for that call, or an exception instance to raise.
    """

    def __init__(self, responder):
        self.responder = responder
        self.calls = []

    async def complete_json(self, system_prompt, user_prompt, response_model):
        self.calls.append((system_prompt, user_prompt, response_model))
        payload = self.responder(system_prompt, user_prompt, response_model)
        if isinstance(payload, Exception):
            raise payload
        return response_model.model_validate(payload)


class FakeSearch:
    """Stands in for BraveSearchClient. Queries containing a fail_on marker raise."""

    def __init__(self, configured=True, fail_on=(), results=None):
        self._configured = configured
        self.fail_on = fail_on
        self.results = results
        self.queries = []

    @property
    def configured(self):
        return self._configured

    async def search(self, query):
        self.queries.append(query)
        for marker in self.fail_on:
            if marker in query:
                raise SearchError(f"rate limited on {marker!r}")
        if self.results is not None:
            return list(self.results)
        return [
            SearchResult(
                title=f"Repair costs for {query}",
                link=f"https://example.com/{len(self.queries)}",
                snippet="Typical repairs run $500 - $1,500.",
            ),
        ]


def default_synthesis(user_prompt):
    """Synthesis payload keyed off the issue line of the prompt."""
    issue_line = user_prompt.splitlines()[0]
    severity = "Medium"
    if "roof" in issue_line.lower():
        severity = "High"
    elif "paint" in issue_line.lower():
        severity = "Low"
    return {
        "summary": f"Summary for {issue_line}",
        "estimatedCostRange": "$500 - $1,500",
        "contractorType": "Handyman",
        "confidence": "High",
        "severity": severity,
        "localContractors": [{"name": "Acme Repairs", "url": "https://acme.example.com"}],
    }


def make_responder(issues=None, extraction_error=None, synthesis=default_synthesis):
    def responder(system_prompt, user_prompt, response_model):
        if response_model is ExtractionResponse:
            if extraction_error is not None:
                return extraction_error
            return {
                "property_address": "123 Main St, Springfield",
                "inspection_date": "2024-05-01",
                "issues": issues if issues is not None else [],
            }
        return synthesis(user_prompt)

    return responder


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def sample_issues():
    return [
        {"issueId": "roof-leak", "description": "Roof leak above garage",
         "context": "Water staining observed on garage ceiling."},
        {"issueId": "peeling-paint", "description": "Peeling exterior paint",
         "context": "Paint is flaking on the south wall."},
        {"issueId": "loose-railing", "description": "Loose stair railing",
         "context": "Railing moves when pushed."},
    ]


@pytest.fixture
def sample_findings(sample_issues):
    return [
        Finding(id=i["issueId"], description=i["description"], context=i["context"])
        for i in sample_issues
    ]


@pytest.fixture
def events():
    """Collects ProgressEvents; pass events.append as the progress sink."""
    return []


@pytest.fixture
def reporter(events):
    return ProgressReporter(events.append, run_id="test-run")


@pytest.fixture
def stage_log(reporter):
    return reporter.stage_log()


@pytest.fixture
def fake_sleep():
    return AsyncMock()


@pytest.fixture
def fast_settings():
    return ResearchSettings(
        search_batch=BatchPolicy(7, 1.0),
        synthesis_batch=BatchPolicy(15, 0.5),
    )


@pytest.fixture
def report_sink():
    sink = MagicMock()
    sink.save = AsyncMock()
    return sink

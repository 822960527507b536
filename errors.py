"""
Exception types for the report agent.

The external services fail in library-specific ways (openai, httpx,
pypdfium2, pydantic). Clients translate those into the types below so
the graph nodes only need to know about four failure kinds, each of
which degrades to a fallback instead of stopping the run.
"""


class ReportAgentError(Exception):
    """Base class for every error raised by the report agent."""


class DocumentError(ReportAgentError):
    """The input document is missing, empty, or not a readable PDF."""


class InferenceError(ReportAgentError):
    """The language model call failed, timed out, or returned unusable JSON."""


class SearchError(ReportAgentError):
    """The web search call failed or returned an unexpected payload."""


class PersistenceError(ReportAgentError):
    """The final report could not be written to the report sink."""

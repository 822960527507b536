"""
Shared state definition for the report pipeline.

Every node in the graph reads from and writes to this state dict. Each
node returns only the keys it wants to update and LangGraph merges them
back in using the reducers attached below:

  - progress_log is append-only, so nodes return just their new lines
  - finding_research is merged key by key and never overwrites an entry
  - everything else is plain last-write-wins

The records stored in the state (Finding, ResearchResult) are frozen
pydantic models, so once a stage writes them nobody mutates them.
"""

import logging
import operator
from typing import Annotated, Literal, Optional, TypedDict

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

NOT_SPECIFIED = "Not specified"

Confidence = Literal["High", "Medium", "Low"]
Severity = Literal["High", "Medium", "Low", "Unknown"]

# sort order for the report, most urgent first
SEVERITY_RANK = {"High": 0, "Medium": 1, "Low": 2, "Unknown": 3}


class Finding(BaseModel):
    """One issue pulled out of the inspection report."""

    model_config = ConfigDict(frozen=True)

    id: str
    description: str
    context: str = ""


class Contractor(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    url: Optional[str] = None


class ResearchResult(BaseModel):
    """Cost/severity judgment for one finding, plus where it came from."""

    model_config = ConfigDict(frozen=True)

    summary: str
    estimated_cost: str
    confidence: Confidence
    contractor_type: str
    severity: Severity = "Unknown"
    sources: list[str] = Field(default_factory=list)
    local_contractors: list[Contractor] = Field(default_factory=list)


def merge_research(current, update):
    """Reducer for finding_research -- adds new keys, keeps existing ones.

    Every finding gets exactly one result, so a second write for the same
    id is a bug upstream. It gets logged and dropped rather than silently
    replacing the first result.
    """
    merged = dict(current or {})
    for finding_id, result in (update or {}).items():
        if finding_id in merged:
            logger.warning("Ignoring duplicate research result for %s", finding_id)
            continue
        merged[finding_id] = result
    return merged


class PipelineState(TypedDict):
    document_buffer: bytes                     # raw PDF bytes, set once by the caller
    extracted_text: str                        # plain text from the PDF
    property_address: str
    inspection_date: str
    findings: list[Finding]                    # set once by extract_findings
    finding_research: Annotated[dict[str, ResearchResult], merge_research]
    final_report: str                          # markdown, only set by compile_report
    progress_log: Annotated[list[str], operator.add]


def initial_state(document_buffer):
    """Fresh state for one run. Nothing is shared between runs."""
    return {
        "document_buffer": document_buffer or b"",
        "extracted_text": "",
        "property_address": NOT_SPECIFIED,
        "inspection_date": NOT_SPECIFIED,
        "findings": [],
        "finding_research": {},
        "final_report": "",
        "progress_log": [],
    }

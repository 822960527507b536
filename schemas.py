"""
Pydantic models for the JSON the LLM sends back.

The model is asked for JSON, but nothing forces it to get the keys or
the types right. Every response goes through parse_json_response(),
which either hands back a validated model or raises InferenceError.
The validators here are lenient about the small stuff (missing keys,
null values, "high" instead of "High") and only fail on responses that
are not a JSON object at all.
"""

import json
import logging
import re
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from errors import InferenceError
from state import NOT_SPECIFIED, Confidence, Contractor, Finding, ResearchResult, Severity

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)
_SLUG_RE = re.compile(r"[^a-z0-9]+")


def slugify(text, max_length=60):
    """'Eroded soil under patio!' -> 'eroded-soil-under-patio'"""
    slug = _SLUG_RE.sub("-", text.lower()).strip("-")
    return slug[:max_length].rstrip("-") or "issue"


def _clean_text(value):
    if value is None:
        return ""
    return str(value).strip()


# --- Finding extraction ---


class IssuePayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    issue_id: str = Field("", alias="issueId")
    description: str
    context: str = ""

    @field_validator("issue_id", "context", mode="before")
    @classmethod
    def _optional_text(cls, value):
        return _clean_text(value)

    @field_validator("description", mode="before")
    @classmethod
    def _required_text(cls, value):
        text = _clean_text(value)
        if not text:
            raise ValueError("description is empty")
        return text


class ExtractionResponse(BaseModel):
    """Response to the finding-extraction prompt."""

    model_config = ConfigDict(extra="ignore")

    property_address: str = NOT_SPECIFIED
    inspection_date: str = NOT_SPECIFIED
    issues: list[IssuePayload] = Field(default_factory=list)

    @field_validator("property_address", "inspection_date", mode="before")
    @classmethod
    def _default_to_not_specified(cls, value):
        return _clean_text(value) or NOT_SPECIFIED

    @field_validator("issues", mode="before")
    @classmethod
    def _drop_malformed_issues(cls, value):
        # a missing or non-list "issues" just means nothing was found
        if not isinstance(value, list):
            return []
        kept = []
        for item in value:
            try:
                kept.append(IssuePayload.model_validate(item))
            except ValidationError as exc:
                logger.debug("Dropping malformed issue %r: %s", item, exc)
        return kept

    def to_findings(self):
        """Turns the issues into Findings with unique, slug-like ids.

        Missing ids are derived from the description and repeated ids get
        a numeric suffix, so the ids can safely key the research map.
        """
        findings = []
        seen = set()
        for issue in self.issues:
            base = slugify(issue.issue_id or issue.description)
            finding_id = base
            n = 2
            while finding_id in seen:
                finding_id = f"{base}-{n}"
                n += 1
            seen.add(finding_id)
            findings.append(
                Finding(id=finding_id, description=issue.description, context=issue.context)
            )
        return findings


# --- Per-finding synthesis ---


class ContractorPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str
    url: Optional[str] = None

    @field_validator("name", mode="before")
    @classmethod
    def _required_name(cls, value):
        text = _clean_text(value)
        if not text:
            raise ValueError("contractor name is empty")
        return text

    @field_validator("url", mode="before")
    @classmethod
    def _optional_url(cls, value):
        return _clean_text(value) or None


class SynthesisResponse(BaseModel):
    """Response to the per-finding cost/severity prompt."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    summary: str = "No summary provided"
    estimated_cost_range: str = Field("Unknown", alias="estimatedCostRange")
    contractor_type: str = Field("General Contractor", alias="contractorType")
    confidence: Confidence = "Medium"
    severity: Severity = "Medium"
    local_contractors: list[ContractorPayload] = Field(
        default_factory=list, alias="localContractors"
    )

    @field_validator("summary", mode="before")
    @classmethod
    def _summary(cls, value):
        return _clean_text(value) or "No summary provided"

    @field_validator("estimated_cost_range", mode="before")
    @classmethod
    def _cost(cls, value):
        return _clean_text(value) or "Unknown"

    @field_validator("contractor_type", mode="before")
    @classmethod
    def _contractor_type(cls, value):
        return _clean_text(value) or "General Contractor"

    @field_validator("confidence", mode="before")
    @classmethod
    def _confidence(cls, value):
        text = _clean_text(value).capitalize()
        return text if text in ("High", "Medium", "Low") else "Medium"

    @field_validator("severity", mode="before")
    @classmethod
    def _severity(cls, value):
        # "Unknown" is reserved for findings we could not research
        text = _clean_text(value).capitalize()
        return text if text in ("High", "Medium", "Low") else "Medium"

    @field_validator("local_contractors", mode="before")
    @classmethod
    def _drop_malformed_contractors(cls, value):
        if not isinstance(value, list):
            return []
        kept = []
        for item in value:
            try:
                kept.append(ContractorPayload.model_validate(item))
            except ValidationError:
                logger.debug("Dropping malformed contractor %r", item)
        return kept

    def to_research(self, sources):
        return ResearchResult(
            summary=self.summary,
            estimated_cost=self.estimated_cost_range,
            confidence=self.confidence,
            contractor_type=self.contractor_type,
            severity=self.severity,
            sources=list(sources),
            local_contractors=[Contractor(name=c.name, url=c.url) for c in self.local_contractors],
        )


def parse_json_response(raw, response_model):
    """Parses raw LLM output into response_model or raises InferenceError."""
    text = _FENCE_RE.sub("", (raw or "").strip())
    if not text:
        raise InferenceError("LLM returned an empty response")
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise InferenceError(f"LLM returned invalid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise InferenceError(f"LLM returned {type(data).__name__}, expected a JSON object")
    try:
        return response_model.model_validate(data)
    except ValidationError as exc:
        raise InferenceError(f"LLM response failed validation: {exc}") from exc

"""
Report compilation -- turns the finished pipeline state into Markdown.

Pure functions only, no I/O, so the whole report can be tested from a
hand-built state dict. The LLM writes cost ranges as free text
("$500 - $2,000", "1.5k-3k", "around $800"), so parse_cost_range() does
best-effort number extraction; anything it can't read is left out of
the totals but still shown under its finding.
"""

import re
from dataclasses import dataclass

from state import NOT_SPECIFIED, SEVERITY_RANK

# "k" only counts as thousands when it isn't the start of a word ("2k", not "2 kitchens")
_AMOUNT = r"(\$)?\s*(\d+(?:\.\d+)?)\s*(k(?![a-z]))?"
_RANGE_RE = re.compile(_AMOUNT + r"\s*(?:-|–|—|to)\s*" + _AMOUNT)
_SINGLE_RE = re.compile(_AMOUNT)

# a single estimate like "$1500" is widened to +/-25%
SINGLE_VALUE_SPREAD = 0.25

SEVERITY_MARKERS = {"High": "🔴", "Medium": "🟡", "Low": "🟢", "Unknown": "⚪"}

DISCLAIMER = (
    "*Disclaimer: This is an AI-generated report. All findings, especially "
    "cost estimates, should be independently verified with qualified "
    "professionals.*"
)


@dataclass(frozen=True)
class CostRange:
    low: float
    high: float


def parse_cost_range(cost_text):
    """Best-effort numeric range from a free-text cost estimate.

    "$500 - $2,000" -> CostRange(500, 2000)
    "1.5k to 3k"    -> CostRange(1500, 3000)
    "2-5k"          -> CostRange(2000, 5000)
    "$1500"         -> CostRange(1125, 1875)
    "$2,500 (1-2 days of labor)" -> CostRange(1875, 3125)
    "N/A"           -> None

    Amounts marked with "$" or "k" win over bare numbers, so durations
    and quantities next to a price aren't read as dollars.
    """
    if not cost_text:
        return None
    text = cost_text.replace(",", "").lower().strip()
    if not text or text in ("n/a", "unknown"):
        return None

    ranges = list(_RANGE_RE.finditer(text))
    singles = list(_SINGLE_RE.finditer(text))

    for match in ranges:
        if _is_money(match):
            return _range_from(match)
    for match in singles:
        if _is_money(match):
            return _single_from(match)
    if ranges:
        return _range_from(ranges[0])
    if singles:
        return _single_from(singles[0])
    return None


def _is_money(match):
    # each _AMOUNT contributes ("$", number, "k") groups
    groups = match.groups()
    return any(groups[i] or groups[i + 2] for i in range(0, len(groups), 3))


def _range_from(match):
    _, low, low_k, _, high, high_k = match.groups()
    low, high = float(low), float(high)
    if high_k:
        high *= 1000
        # "2-5k" means 2000-5000, but "2000-5k" is already in dollars
        if not low_k and low * 1000 <= high:
            low *= 1000
    if low_k:
        low *= 1000
    if low > high:
        low, high = high, low
    return CostRange(low, high)


def _single_from(match):
    _, value, k = match.groups()
    value = float(value)
    if k:
        value *= 1000
    return CostRange(value * (1 - SINGLE_VALUE_SPREAD), value * (1 + SINGLE_VALUE_SPREAD))


def format_currency(amount):
    return f"${int(amount + 0.5):,}"


@dataclass
class CostTotals:
    low: float = 0.0
    high: float = 0.0
    count: int = 0

    def add(self, cost):
        self.low += cost.low
        self.high += cost.high
        self.count += 1

    def as_text(self):
        return f"{format_currency(self.low)} - {format_currency(self.high)}"


def summarize_costs(findings, research):
    """Returns (overall CostTotals, {severity: CostTotals}) over parsable costs."""
    total = CostTotals()
    by_severity = {"High": CostTotals(), "Medium": CostTotals(), "Low": CostTotals()}
    for finding in findings:
        result = research.get(finding.id)
        if result is None:
            continue
        cost = parse_cost_range(result.estimated_cost)
        if cost is None:
            continue
        total.add(cost)
        if result.severity in by_severity:
            by_severity[result.severity].add(cost)
    return total, by_severity


def sort_by_severity(findings, research):
    """Most urgent first. sorted() is stable, so ties keep report order."""
    def rank(finding):
        result = research.get(finding.id)
        severity = result.severity if result else "Unknown"
        return SEVERITY_RANK.get(severity, SEVERITY_RANK["Unknown"])

    return sorted(findings, key=rank)


def _cost_summary_lines(findings, research):
    total, by_severity = summarize_costs(findings, research)
    lines = ["## 💰 Total Estimated Repair Costs", ""]

    if total.count == 0:
        lines += [
            "**Status:** Cost estimates could not be determined for the identified issues.",
            "**Recommendation:** Consult with qualified contractors for detailed estimates.",
            "",
        ]
        return lines

    lines += [
        f"**Estimated Range:** {total.as_text()}",
        f"**Based on:** {total.count} of {len(findings)} issues with cost estimates",
        "",
        "### Cost Breakdown by Priority:",
        "",
        "| Priority | Issues | Estimated Cost Range |",
        "|:---|:---:|:---|",
    ]
    labels = {"High": "**High Priority**", "Medium": "Medium Priority", "Low": "Low Priority"}
    for severity, label in labels.items():
        bucket = by_severity[severity]
        if bucket.count:
            lines.append(
                f"| {SEVERITY_MARKERS[severity]} {label} | {bucket.count} | {bucket.as_text()} |"
            )
    lines.append("")

    missing = len(findings) - total.count
    if missing:
        lines += [
            f"*Note: {missing} issues could not be estimated and may require additional budget.*",
            "",
        ]
    return lines


def _cell(value):
    """Makes free text safe inside a Markdown table cell."""
    return " ".join(str(value).split()).replace("|", "\\|")


def _finding_lines(finding, result):
    if result is None:
        return [
            f"### {SEVERITY_MARKERS['Unknown']} Issue: {finding.description}",
            "",
            "*No research is available for this issue.*",
            "",
        ]

    severity = f"**{result.severity}**" if result.severity == "High" else result.severity
    lines = [
        f"### {SEVERITY_MARKERS.get(result.severity, SEVERITY_MARKERS['Unknown'])} "
        f"Issue: {finding.description}",
        "",
        "**Summary & Analysis:**",
        result.summary,
        "",
        f"**Severity:** {severity}",
        f"**Estimated Cost Range:** {result.estimated_cost}",
        f"**Confidence:** {result.confidence}",
        f"**Required Contractor:** {result.contractor_type}",
        "",
    ]
    if result.local_contractors:
        lines += [
            "**Potential Local Contractors:**",
            "| Name | Website |",
            "|:---|:---|",
        ]
        for contractor in result.local_contractors:
            website = f"[Website]({_cell(contractor.url)})" if contractor.url else ""
            lines.append(f"| {_cell(contractor.name)} | {website} |")
        lines.append("")
    return lines


def compile_report(state):
    """Builds the Markdown repair estimate from the pipeline state."""
    findings = state.get("findings") or []
    research = state.get("finding_research") or {}

    lines = [
        "# Repair Estimate Summary",
        "",
        f"**Property Address:** {state.get('property_address') or NOT_SPECIFIED}",
        f"**Inspection Date:** {state.get('inspection_date') or NOT_SPECIFIED}",
        "",
    ]
    lines += _cost_summary_lines(findings, research)
    lines += [
        "---",
        "",
        "## Summary of Findings",
        "",
        f"This report summarizes {len(findings)} key issues identified during the "
        "inspection. Each issue has been analyzed for potential cost and required "
        "contractor type based on automated web research.",
        "",
        "---",
        "",
    ]

    for finding in sort_by_severity(findings, research):
        lines += _finding_lines(finding, research.get(finding.id))

    lines += [
        "---",
        "",
        DISCLAIMER,
        "",
        "---",
        "",
        "**Information Sources:**",
        "| Issue ID | Sources |",
        "|:---|:---|",
    ]
    for finding in findings:
        result = research.get(finding.id)
        if result is not None:
            lines.append(f"| {_cell(finding.id)} | {_cell(', '.join(result.sources))} |")

    return "\n".join(lines) + "\n"

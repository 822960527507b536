"""Tests for report.py: cost parsing, severity ordering and the Markdown output."""

import pytest

from report import (
    CostRange,
    compile_report,
    format_currency,
    parse_cost_range,
    sort_by_severity,
    summarize_costs,
)
from state import Contractor, Finding, ResearchResult


def result(severity="Medium", cost="$500 - $2,000", **kwargs):
    defaults = dict(
        summary=f"{severity} summary",
        estimated_cost=cost,
        confidence="High",
        contractor_type="Plumber",
        severity=severity,
        sources=["https://example.com"],
    )
    defaults.update(kwargs)
    return ResearchResult(**defaults)


def state_for(findings, research, **extra):
    state = {
        "property_address": "123 Main St",
        "inspection_date": "2024-05-01",
        "findings": findings,
        "finding_research": research,
    }
    state.update(extra)
    return state


# =============================================================================
# parse_cost_range
# =============================================================================


class TestParseCostRange:

    @pytest.mark.parametrize("text,expected", [
        ("$500 - $2,000", CostRange(500, 2000)),
        ("$1,500 to $3,000", CostRange(1500, 3000)),
        ("500-2000", CostRange(500, 2000)),
        ("$2k – $5k", CostRange(2000, 5000)),
        ("1.5k to 3k", CostRange(1500, 3000)),
        ("2-5k", CostRange(2000, 5000)),
        ("$2k - $5,000", CostRange(2000, 5000)),
        ("$800 - $1,200 per window", CostRange(800, 1200)),
        ("2-3 days, $500 - $800", CostRange(500, 800)),
    ])
    def test_ranges(self, text, expected):
        assert parse_cost_range(text) == expected

    def test_single_value_gets_25_percent_band(self):
        assert parse_cost_range("$1500") == CostRange(1125, 1875)

    def test_single_value_with_k_suffix(self):
        assert parse_cost_range("about 2k") == CostRange(1500, 2500)

    @pytest.mark.parametrize("text,expected", [
        ("$2,500 (1-2 days of labor)", CostRange(1875, 3125)),
        ("About $800, 2 to 3 hours", CostRange(600, 1000)),
    ])
    def test_dollar_amount_beats_bare_duration_range(self, text, expected):
        assert parse_cost_range(text) == expected

    def test_k_at_start_of_word_is_not_thousands(self):
        assert parse_cost_range("$300 - $600 kitchen faucet") == CostRange(300, 600)

    def test_reversed_range_is_swapped(self):
        cost = parse_cost_range("$3,000 - $1,000")
        assert cost.low <= cost.high
        assert cost == CostRange(1000, 3000)

    @pytest.mark.parametrize("text", ["", None, "N/A", "Unknown", "unknown", "Varies widely"])
    def test_unparsable_returns_none(self, text):
        assert parse_cost_range(text) is None


def test_format_currency_rounds_and_groups():
    assert format_currency(1124.6) == "$1,125"
    assert format_currency(0) == "$0"
    assert format_currency(1234567) == "$1,234,567"


# =============================================================================
# Aggregation and ordering
# =============================================================================


class TestSummarizeCosts:

    def test_totals_and_severity_buckets(self):
        findings = [Finding(id="a", description="A"), Finding(id="b", description="B"),
                    Finding(id="c", description="C")]
        research = {
            "a": result("High", "$500 - $2,000"),
            "b": result("Low", "$1000"),
            "c": result("Medium", "N/A"),
        }

        total, by_severity = summarize_costs(findings, research)

        assert (total.low, total.high, total.count) == (1250, 3250, 2)
        assert (by_severity["High"].low, by_severity["High"].high) == (500, 2000)
        assert (by_severity["Low"].low, by_severity["Low"].high) == (750, 1250)
        assert by_severity["Medium"].count == 0
        assert total.low <= total.high

    def test_unknown_severity_counts_toward_total_only(self):
        findings = [Finding(id="a", description="A")]
        total, by_severity = summarize_costs(findings, {"a": result("Unknown", "$100 - $200")})

        assert total.count == 1
        assert all(bucket.count == 0 for bucket in by_severity.values())


class TestSortBySeverity:

    def test_orders_high_medium_low_unknown(self):
        findings = [Finding(id=s.lower(), description=s) for s in ["Low", "High", "Unknown", "Medium"]]
        research = {f.id: result(f.description) for f in findings}

        ordered = sort_by_severity(findings, research)

        assert [research[f.id].severity for f in ordered] == ["High", "Medium", "Low", "Unknown"]

    def test_ties_keep_original_order(self):
        findings = [Finding(id=f"f{i}", description=f"F{i}") for i in range(5)]
        research = {f.id: result("Medium") for f in findings}
        research["f3"] = result("High")

        ordered = sort_by_severity(findings, research)

        assert [f.id for f in ordered] == ["f3", "f0", "f1", "f2", "f4"]

    def test_does_not_mutate_input(self):
        findings = [Finding(id="a", description="A"), Finding(id="b", description="B")]
        research = {"a": result("Low"), "b": result("High")}

        sort_by_severity(findings, research)

        assert [f.id for f in findings] == ["a", "b"]

    def test_missing_research_sorts_last(self):
        findings = [Finding(id="a", description="A"), Finding(id="b", description="B")]

        ordered = sort_by_severity(findings, {"b": result("Low")})

        assert [f.id for f in ordered] == ["b", "a"]


# =============================================================================
# compile_report
# =============================================================================


class TestCompileReport:

    def test_header_and_totals(self):
        findings = [Finding(id="a", description="Roof leak"), Finding(id="b", description="Paint")]
        research = {"a": result("High", "$500 - $2,000"), "b": result("Low", "$1000")}

        report = compile_report(state_for(findings, research))

        assert report.startswith("# Repair Estimate Summary\n")
        assert "**Property Address:** 123 Main St" in report
        assert "**Inspection Date:** 2024-05-01" in report
        assert "**Estimated Range:** $1,250 - $3,250" in report
        assert "**Based on:** 2 of 2 issues with cost estimates" in report
        assert "| 🔴 **High Priority** | 1 | $500 - $2,000 |" in report
        assert "| 🟢 Low Priority | 1 | $750 - $1,250 |" in report
        assert "Medium Priority" not in report
        assert "could not be estimated" not in report

    def test_no_parsable_costs_never_prints_a_total(self):
        findings = [Finding(id="a", description="A"), Finding(id="b", description="B")]
        research = {"a": result(cost="N/A"), "b": result(cost="Unknown")}

        report = compile_report(state_for(findings, research))

        assert "Cost estimates could not be determined" in report
        assert "Estimated Range" not in report
        assert "$0" not in report

    def test_note_for_findings_without_estimate(self):
        findings = [Finding(id="a", description="A"), Finding(id="b", description="B")]
        research = {"a": result(cost="$100 - $200"), "b": result(cost="N/A")}

        report = compile_report(state_for(findings, research))

        assert "*Note: 1 issues could not be estimated and may require additional budget.*" in report

    def test_findings_appear_in_severity_order(self):
        findings = [Finding(id=s.lower(), description=f"{s} issue") for s in ["Low", "High", "Unknown", "Medium"]]
        research = {f.id: result(f.description.split()[0]) for f in findings}

        report = compile_report(state_for(findings, research))

        positions = [report.index(f"Issue: {s} issue") for s in ["High", "Medium", "Low", "Unknown"]]
        assert positions == sorted(positions)

    def test_finding_section_details(self):
        findings = [Finding(id="a", description="Leaking trap")]
        research = {"a": result(
            "High",
            "$150 - $300",
            summary="Replace the P-trap.",
            confidence="Medium",
            local_contractors=[Contractor(name="Joe's Plumbing", url="https://joes.example.com"),
                               Contractor(name="No Site Co")],
        )}

        report = compile_report(state_for(findings, research))

        assert "### 🔴 Issue: Leaking trap" in report
        assert "**Summary & Analysis:**\nReplace the P-trap." in report
        assert "**Severity:** **High**" in report
        assert "**Estimated Cost Range:** $150 - $300" in report
        assert "**Confidence:** Medium" in report
        assert "**Required Contractor:** Plumber" in report
        assert "| Joe's Plumbing | [Website](https://joes.example.com) |" in report
        assert "| No Site Co |  |" in report

    def test_no_contractor_table_without_contractors(self):
        findings = [Finding(id="a", description="A")]

        report = compile_report(state_for(findings, {"a": result()}))

        assert "Potential Local Contractors" not in report

    def test_disclaimer_and_sources_in_original_order(self):
        findings = [Finding(id="low-one", description="A"), Finding(id="high-one", description="B")]
        research = {
            "low-one": result("Low", sources=["https://a.example.com", "https://b.example.com"]),
            "high-one": result("High", sources=["https://c.example.com"]),
        }

        report = compile_report(state_for(findings, research))

        assert "*Disclaimer: This is an AI-generated report." in report
        assert report.index("Disclaimer") < report.index("**Information Sources:**")
        assert "| low-one | https://a.example.com, https://b.example.com |" in report
        assert report.index("| low-one |") < report.index("| high-one |")

    def test_pipes_and_newlines_do_not_break_tables(self):
        findings = [Finding(id="x", description="Gutter")]
        research = {"x": result(
            sources=["a|b"],
            local_contractors=[Contractor(name="Joe | Sons\nGutters", url="https://joe.example.com")],
        )}

        report = compile_report(state_for(findings, research))

        assert "| Joe \\| Sons Gutters | [Website](https://joe.example.com) |" in report
        assert "| x | a\\|b |" in report

    def test_finding_without_research_is_still_listed(self):
        findings = [Finding(id="a", description="Mystery stain")]

        report = compile_report(state_for(findings, {}))

        assert "Issue: Mystery stain" in report
        assert "No research is available for this issue." in report

    def test_missing_metadata_defaults_to_not_specified(self):
        report = compile_report({"findings": [], "finding_research": {}})

        assert "**Property Address:** Not specified" in report

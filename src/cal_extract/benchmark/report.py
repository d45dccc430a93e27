"""Benchmark report formatters for console and markdown output.

Produces two output formats:
- **Console summary**: one row per model with success rate, latency,
  cost and confidence, plus a cost comparison and recommendations.
- **Markdown report**: the same tables followed by a per-case breakdown
  with accuracy scores and errors.

Follows the ``demo_output.py`` pattern of building a list of strings.
"""

from __future__ import annotations

from datetime import datetime

from cal_extract.benchmark.runner import BenchmarkResult, CaseResult, ModelSummary
from cal_extract.prompts import EXTRACTION_POLICY_VERSION, SEGMENTATION_POLICY_VERSION

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_BANNER_WIDTH = 60
_SEPARATOR = "=" * _BANNER_WIDTH
_RULE = "-" * 80


# ---------------------------------------------------------------------------
# Console summary
# ---------------------------------------------------------------------------


def format_console_summary(result: BenchmarkResult) -> str:
    """Format a compact console summary of a model comparison.

    Args:
        result: The benchmark result to format.

    Returns:
        Multi-line string for console display.
    """
    lines: list[str] = []

    lines.append(_SEPARATOR)
    lines.append("  MODEL COMPARISON RESULTS")
    lines.append(_SEPARATOR)

    if not result.summaries:
        lines.append("")
        lines.append("  No models were run.")
        lines.append(_SEPARATOR)
        return "\n".join(lines)

    lines.append("")
    lines.append("--- SUMMARY ---")
    lines.append(_RULE)
    lines.append(
        "Model".ljust(24)
        + "Success Rate".ljust(15)
        + "Avg Time (ms)".ljust(15)
        + "Total Cost ($)".ljust(16)
        + "Avg Confidence"
    )
    lines.append(_RULE)
    for summary in result.summaries:
        lines.append(_format_summary_row(summary))

    lines.append("")
    lines.append("--- COST ANALYSIS ---")
    baseline = result.summaries[0].total_cost_usd
    for summary in result.summaries:
        multiplier = summary.total_cost_usd / baseline if baseline > 0 else 1.0
        lines.append(
            f"  {summary.model}: ${summary.total_cost_usd:.6f} ({multiplier:.1f}x baseline)"
        )

    lines.append("")
    lines.append("--- RECOMMENDATIONS ---")
    for criterion, model in result.recommendations().items():
        lines.append(f"  Best {criterion}: {model}")

    lines.append(_SEPARATOR)
    return "\n".join(lines)


def _format_summary_row(summary: ModelSummary) -> str:
    return (
        summary.model.ljust(24)
        + f"{summary.success_rate:.1%}".ljust(15)
        + f"{summary.average_latency_s * 1000:.0f}".ljust(15)
        + f"${summary.total_cost_usd:.6f}".ljust(16)
        + f"{summary.average_confidence:.3f}"
    )


# ---------------------------------------------------------------------------
# Markdown report
# ---------------------------------------------------------------------------


def format_markdown_report(result: BenchmarkResult) -> str:
    """Format a detailed markdown report of a model comparison.

    Args:
        result: The benchmark result to format.

    Returns:
        Markdown string ready to write to a file.
    """
    lines: list[str] = []

    lines.append(f"# Model Comparison Report: {result.timestamp}")
    lines.append("")
    lines.append(f"**Reference time:** {result.reference_now}")
    lines.append(f"**Models:** {len(result.summaries)}")
    lines.append(
        f"**Policy versions:** segmentation {SEGMENTATION_POLICY_VERSION}, "
        f"extraction {EXTRACTION_POLICY_VERSION}"
    )

    if not result.summaries:
        lines.append("")
        lines.append("No models were run.")
        return "\n".join(lines)

    lines.append("")
    lines.append("## Summary")
    lines.append("")
    lines.append("| Model | Success Rate | Avg Time (ms) | Total Cost ($) | Avg Confidence |")
    lines.append("|-------|--------------|---------------|----------------|----------------|")
    for summary in result.summaries:
        lines.append(
            f"| {summary.model} | {summary.success_rate:.1%} "
            f"| {summary.average_latency_s * 1000:.0f} "
            f"| {summary.total_cost_usd:.6f} "
            f"| {summary.average_confidence:.3f} |"
        )

    recommendations = result.recommendations()
    lines.append("")
    lines.append("## Recommendations")
    lines.append("")
    for criterion, model in recommendations.items():
        lines.append(f"- Best {criterion}: `{model}`")

    for summary in result.summaries:
        lines.append("")
        lines.append(f"## {summary.model}")
        for case_result in summary.results:
            lines.append("")
            _append_case_detail(lines, case_result)

    lines.append("")
    return "\n".join(lines)


def _append_case_detail(lines: list[str], case_result: CaseResult) -> None:
    """Append detailed markdown for one case result."""
    status = "PASS" if case_result.success else "FAIL"
    lines.append(f"### {case_result.case_name} [{status}]")
    lines.append("")
    lines.append(f"- Latency: {case_result.latency_s:.2f}s")
    lines.append(f"- Estimated cost: ${case_result.estimated_cost:.6f}")

    if case_result.error:
        lines.append(f"- **Error:** {case_result.error}")

    if case_result.confidence is not None:
        lines.append(f"- Confidence: {case_result.confidence:.2f}")
    if case_result.segmentation is not None:
        lines.append(f"- Segmentation: {case_result.segmentation.reason}")
    if case_result.fields is not None:
        lines.append(
            f"- Field accuracy: {case_result.fields.score:.2f} ({case_result.fields.reason})"
        )

    for event in case_result.events:
        lines.append(f'  - "{event.title}" @ {event.start_date.isoformat()}')


def generate_report_filename() -> str:
    """Generate a timestamped report filename.

    Returns:
        Filename like ``"benchmark_2026-02-20T14-30-45.md"``.
    """
    ts = datetime.now().strftime("%Y-%m-%dT%H-%M-%S")
    return f"benchmark_{ts}.md"

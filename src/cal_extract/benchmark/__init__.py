"""Evaluation suite for segmentation and extraction accuracy.

Provides scorers for segmentation start lines and extracted event
fields, a runner that compares models on a fixed set of inputs, and
report formatters for console and markdown output.
"""

from __future__ import annotations

from cal_extract.benchmark.report import (
    format_console_summary,
    format_markdown_report,
    generate_report_filename,
)
from cal_extract.benchmark.runner import (
    DEFAULT_CASES,
    BenchmarkCase,
    BenchmarkResult,
    CaseResult,
    ModelSummary,
    load_cases,
    run_benchmark,
    validate_extraction,
)
from cal_extract.benchmark.scoring import (
    ScoreResult,
    clean_starts,
    score_event_fields,
    score_segmentation,
)

__all__ = [
    "DEFAULT_CASES",
    "BenchmarkCase",
    "BenchmarkResult",
    "CaseResult",
    "ModelSummary",
    "ScoreResult",
    "clean_starts",
    "format_console_summary",
    "format_markdown_report",
    "generate_report_filename",
    "load_cases",
    "run_benchmark",
    "score_event_fields",
    "score_segmentation",
    "validate_extraction",
]

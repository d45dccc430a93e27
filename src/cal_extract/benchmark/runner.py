"""Model comparison runner.

Runs a list of :class:`BenchmarkCase` inputs against one or more models,
recording latency, estimated cost, overall confidence and (when the case
carries expectations) segmentation and field accuracy.

Key functions:
    :func:`load_cases` -- read cases from a JSON file.
    :func:`run_benchmark` -- run every case against every model.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo

from cal_extract.api import event_summary_dict
from cal_extract.benchmark.scoring import (
    ScoreResult,
    score_event_fields,
    score_segmentation,
)
from cal_extract.cost import estimate_cost, estimate_tokens
from cal_extract.gateway import ModelGateway
from cal_extract.models.event import ExtractedEventData
from cal_extract.models.options import ProcessingOptions
from cal_extract.pipeline import extract_event_details, run_extraction

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "America/New_York"
DEFAULT_NOW = datetime(2025, 6, 10, 12, 0, tzinfo=ZoneInfo(DEFAULT_TIMEZONE))

# Typical size of one extracted event object.
ESTIMATED_OUTPUT_TOKENS = 200

# Extractions below this overall confidence count as failures.
MIN_CONFIDENCE = 0.3


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BenchmarkCase:
    """One benchmark input.

    Attributes:
        name: Display name (e.g. ``"Simple Event"``).
        text: The input text.
        expected_fields: Fields that must be present and plausible in the
            first extracted event (``title``, ``startDate``, ``endDate``,
            ``location``, ``timezone``, ``recurrence``, ``isAllDay``).
        complexity: Free-form label (``"low"``, ``"medium"``, ``"high"``).
        multi_event: Run the full segmenting pipeline instead of the
            single-event path.
        expected_starts: Expected segmentation start lines, if scored.
        expected_events: Expected events in wire format, if scored.
    """

    name: str
    text: str
    expected_fields: tuple[str, ...] = ("title", "startDate", "endDate")
    complexity: str = "medium"
    multi_event: bool = False
    expected_starts: tuple[int, ...] | None = None
    expected_events: tuple[dict[str, Any], ...] | None = None


DEFAULT_CASES: tuple[BenchmarkCase, ...] = (
    BenchmarkCase("Simple Event", "Lunch tomorrow at 1pm", complexity="low"),
    BenchmarkCase(
        "Event with Location",
        "Board meeting next Tuesday 2-4pm at conference room A",
        expected_fields=("title", "startDate", "endDate", "location"),
    ),
    BenchmarkCase(
        "Multi-Event Text",
        "Dentist Monday 10am, dinner with Sarah Friday 7pm",
        complexity="high",
    ),
    BenchmarkCase(
        "Ambiguous Time",
        "Call mom sometime this afternoon",
        expected_fields=("title", "startDate"),
        complexity="high",
    ),
    BenchmarkCase(
        "Recurring Event",
        "Team standup every Monday at 9am",
        expected_fields=("title", "startDate", "endDate", "recurrence"),
    ),
    BenchmarkCase(
        "All-Day Event",
        "Vacation December 25th",
        expected_fields=("title", "startDate", "isAllDay"),
        complexity="low",
    ),
    BenchmarkCase(
        "Event with Timezone",
        "Conference call 3pm EST with client",
        expected_fields=("title", "startDate", "endDate", "timezone"),
    ),
)


@dataclass
class CaseResult:
    """Result of running one case against one model.

    Attributes:
        case_name: Name of the :class:`BenchmarkCase`.
        model: Model identifier.
        success: Whether the extraction passed :func:`validate_extraction`.
        events: Extracted events (empty on error).
        error: Failure description, or ``None``.
        latency_s: Wall-clock time for the extraction.
        estimated_cost: Estimated USD cost of the call.
        segmentation: Segmentation accuracy, if the case scores it.
        fields: Field accuracy, if the case scores it.
    """

    case_name: str
    model: str
    success: bool = False
    events: list[ExtractedEventData] = field(default_factory=list)
    error: str | None = None
    latency_s: float = 0.0
    estimated_cost: float = 0.0
    segmentation: ScoreResult | None = None
    fields: ScoreResult | None = None

    @property
    def confidence(self) -> float | None:
        if not self.events:
            return None
        return self.events[0].confidence.overall


@dataclass
class ModelSummary:
    """All case results for one model, with summary statistics."""

    model: str
    results: list[CaseResult] = field(default_factory=list)

    @property
    def success_rate(self) -> float:
        if not self.results:
            return 0.0
        return sum(1 for r in self.results if r.success) / len(self.results)

    @property
    def average_latency_s(self) -> float:
        if not self.results:
            return 0.0
        return sum(r.latency_s for r in self.results) / len(self.results)

    @property
    def total_cost_usd(self) -> float:
        return sum(r.estimated_cost for r in self.results)

    @property
    def average_confidence(self) -> float:
        """Mean overall confidence across successful cases (0.0 if none)."""
        scores = [r.confidence for r in self.results if r.success and r.confidence is not None]
        return sum(scores) / len(scores) if scores else 0.0


@dataclass
class BenchmarkResult:
    """Aggregate result of a model comparison run.

    Attributes:
        summaries: One :class:`ModelSummary` per model, in run order.
        timestamp: ISO 8601 timestamp of the run.
        reference_now: The fixed "now" every case was resolved against.
    """

    summaries: list[ModelSummary] = field(default_factory=list)
    timestamp: str = ""
    reference_now: str = ""

    def recommendations(self) -> dict[str, str]:
        """Best model by accuracy, speed and cost (empty if nothing ran)."""
        if not self.summaries:
            return {}
        return {
            "accuracy": max(self.summaries, key=lambda s: s.success_rate).model,
            "speed": min(self.summaries, key=lambda s: s.average_latency_s).model,
            "cost": min(self.summaries, key=lambda s: s.total_cost_usd).model,
        }


# ---------------------------------------------------------------------------
# Case loading
# ---------------------------------------------------------------------------


def _case_from_dict(raw: dict[str, Any]) -> BenchmarkCase:
    if not isinstance(raw.get("name"), str) or not isinstance(raw.get("text"), str):
        raise ValueError(f"Benchmark case needs string 'name' and 'text': {raw!r}")

    starts = raw.get("expectedStarts")
    events = raw.get("expectedEvents")
    if isinstance(events, dict):
        events = [events]
    multi_default = starts is not None or (events is not None and len(events) > 1)

    return BenchmarkCase(
        name=raw["name"],
        text=raw["text"],
        expected_fields=tuple(raw.get("expectedFields", ("title", "startDate", "endDate"))),
        complexity=raw.get("complexity", "medium"),
        multi_event=bool(raw.get("multiEvent", multi_default)),
        expected_starts=tuple(starts) if starts is not None else None,
        expected_events=tuple(events) if events is not None else None,
    )


def load_cases(path: Path) -> list[BenchmarkCase]:
    """Load benchmark cases from a JSON file.

    The file holds either a list of case objects or ``{"cases": [...]}``.
    Each object has ``name`` and ``text`` and optionally
    ``expectedFields``, ``complexity``, ``multiEvent``, ``expectedStarts``
    and ``expectedEvents``.

    Raises:
        FileNotFoundError: If *path* does not exist.
        ValueError: If the file is not valid JSON or a case is malformed.
    """
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid benchmark cases file {path}: {exc}") from exc

    if isinstance(data, dict):
        data = data.get("cases")
    if not isinstance(data, list):
        raise ValueError(f"Benchmark cases file {path} must contain a list of cases")
    return [_case_from_dict(item) for item in data]


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def validate_extraction(event: ExtractedEventData, expected_fields: Sequence[str]) -> bool:
    """Check that *event* has plausible values for every expected field.

    ``timezone`` must name a zone other than UTC, ``isAllDay`` must be
    true, and the overall confidence must be at least
    :data:`MIN_CONFIDENCE`.
    """
    for name in expected_fields:
        if name == "title" and not event.title.strip():
            return False
        if name == "endDate" and event.end_date <= event.start_date:
            return False
        if name == "location" and not event.location.strip():
            return False
        if name == "timezone" and event.timezone in ("", "UTC"):
            return False
        if name == "recurrence" and not event.recurrence:
            return False
        if name == "isAllDay" and not event.is_all_day:
            return False
    return event.confidence.overall >= MIN_CONFIDENCE


# ---------------------------------------------------------------------------
# Main benchmark runner
# ---------------------------------------------------------------------------


async def _run_case(
    case: BenchmarkCase,
    model: str,
    gateway: ModelGateway,
    options: ProcessingOptions,
    segmentation: str,
) -> CaseResult:
    result = CaseResult(case_name=case.name, model=model)
    input_tokens = estimate_tokens(case.text)
    result.estimated_cost = estimate_cost(input_tokens, ESTIMATED_OUTPUT_TOKENS, model)

    t0 = time.monotonic()
    try:
        if case.multi_event:
            run = await run_extraction(case.text, options, gateway, segmentation=segmentation)
            result.events = run.events
            if case.expected_starts is not None:
                result.segmentation = score_segmentation(case.expected_starts, run.starts)
        else:
            result.events = [await extract_event_details(case.text, options, gateway)]
    except Exception as exc:
        result.latency_s = time.monotonic() - t0
        result.error = str(exc)
        logger.error("Case %r failed on %s: %s", case.name, model, exc)
        return result
    result.latency_s = time.monotonic() - t0

    if case.expected_events is not None:
        actual = [event_summary_dict(event) for event in result.events]
        result.fields = score_event_fields(list(case.expected_events), actual)

    result.success = validate_extraction(result.events[0], case.expected_fields)
    if not result.success:
        result.error = "Validation failed - missing or invalid required fields"
    return result


async def run_benchmark(
    cases: Sequence[BenchmarkCase],
    gateway_factory: Callable[[str], ModelGateway],
    models: Sequence[str],
    *,
    now: datetime = DEFAULT_NOW,
    timezone: str = DEFAULT_TIMEZONE,
    segmentation: str = "model",
    delay_s: float = 0.0,
) -> BenchmarkResult:
    """Run every case against every model, sequentially.

    Args:
        cases: Inputs to run.
        gateway_factory: Returns the gateway to use for a model identifier.
        models: Model identifiers to compare; each must be priced in
            :data:`~cal_extract.cost.MODEL_PRICING`.
        now: Fixed reference time for relative dates.
        timezone: Target timezone for every case.
        segmentation: ``"model"`` or ``"rules"`` for multi-event cases.
        delay_s: Pause between calls (rate limiting).

    Returns:
        A :class:`BenchmarkResult` with one summary per model.
    """
    result = BenchmarkResult(
        timestamp=datetime.now().isoformat(),
        reference_now=now.isoformat(),
    )
    total = len(cases)

    for model in models:
        logger.info("Benchmarking %s on %d case(s)", model, total)
        gateway = gateway_factory(model)
        options = ProcessingOptions(timezone=timezone, current_date=now, model=model)
        summary = ModelSummary(model=model)

        for idx, case in enumerate(cases, 1):
            if idx > 1 and delay_s > 0:
                await asyncio.sleep(delay_s)

            case_result = await _run_case(case, model, gateway, options, segmentation)
            summary.results.append(case_result)

            status = "OK" if case_result.success else "FAIL"
            print(
                f"[{model} {idx}/{total}] {case.name}... {status} ({case_result.latency_s:.1f}s)",
                file=sys.stderr,
            )

        result.summaries.append(summary)

    return result

"""Console formatter for extraction results.

Renders an :class:`~cal_extract.pipeline.ExtractionRun` (or a single
event) as structured console output: the segmentation, each extracted
event with its confidence, the dropped chunks and a summary.

:func:`format_extraction_run` returns the formatted string;
:func:`print_extraction_run` writes it to stdout.  :func:`events_to_json`
renders the API wire format for ``--json`` output.
"""

from __future__ import annotations

import json
import sys
from datetime import datetime

from cal_extract.api import event_detail_dict, event_summary_dict
from cal_extract.models.event import ExtractedEventData
from cal_extract.pipeline import ExtractionRun

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_BANNER_WIDTH = 60
_SEPARATOR = "=" * _BANNER_WIDTH
_TIME_FORMAT = "%A %Y-%m-%d, %I:%M %p"


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def format_extraction_run(run: ExtractionRun) -> str:
    """Render an :class:`ExtractionRun` as structured demo output.

    Sections:

    - **Stage 1** -- Segmentation (line count, chunk boundaries).
    - **Stage 2** -- Extracted events with time, location and confidence.
    - **Summary** -- Counts, dropped chunks and duration.

    Args:
        run: The extraction run to format.

    Returns:
        A multi-line string ready for console display.
    """
    lines: list[str] = []

    _append_banner(lines)
    _append_segmentation(lines, run)
    _append_events(lines, run.events)
    _append_summary(lines, run)
    lines.append(_SEPARATOR)

    return "\n".join(lines)


def format_single_event(event: ExtractedEventData) -> str:
    """Render one event (the ``--single`` path) with its full confidence."""
    lines: list[str] = []
    _append_banner(lines)
    _append_events(lines, [event])

    lines.append("")
    lines.append("--- CONFIDENCE ---")
    for name, score in event.confidence.model_dump(by_alias=True).items():
        lines.append(f"  {name}: {score:.2f}")
    lines.append(_SEPARATOR)
    return "\n".join(lines)


def print_extraction_run(run: ExtractionRun) -> None:
    """Format and print an :class:`ExtractionRun` to stdout."""
    sys.stdout.write(format_extraction_run(run) + "\n")


def events_to_json(events: list[ExtractedEventData], single: bool = False) -> str:
    """Serialise *events* in the API wire format.

    Args:
        events: Events to render.
        single: Render the detailed single-event shape instead of the
            multi-event summary shape.

    Returns:
        Indented JSON text.
    """
    if single:
        payload: object = event_detail_dict(events[0])
    else:
        payload = [event_summary_dict(event) for event in events]
    return json.dumps(payload, indent=2, ensure_ascii=False)


# ---------------------------------------------------------------------------
# Internal formatters
# ---------------------------------------------------------------------------


def _append_banner(lines: list[str]) -> None:
    lines.append(_SEPARATOR)
    lines.append("  TEXT-TO-CALENDAR EXTRACTION")
    lines.append(_SEPARATOR)


def _append_segmentation(lines: list[str], run: ExtractionRun) -> None:
    """Append Stage 1: Segmentation."""
    lines.append("")
    lines.append("--- STAGE 1: Segmentation ---")
    lines.append(f"  Lines: {len(run.text.splitlines()) or 1}")
    lines.append(f"  Chunks: {len(run.chunks)} (starts {run.starts})")


def _append_events(lines: list[str], events: list[ExtractedEventData]) -> None:
    """Append Stage 2: Events Extracted."""
    lines.append("")
    lines.append("--- STAGE 2: Events Extracted ---")
    lines.append(f"  Found {len(events)} event(s)")

    for idx, event in enumerate(events, start=1):
        lines.append("")
        lines.append(f"  Event {idx}: {event.title}")
        lines.append(f"    When: {format_event_time(event.start_date, event.end_date)}")

        if event.is_all_day:
            lines.append("    All day: yes")
        if event.location:
            lines.append(f"    Where: {event.location}")
        if event.recurrence:
            lines.append(f"    Repeats: {event.recurrence}")
        if event.summary:
            lines.append(f"    Summary: {event.summary}")

        lines.append(f"    Timezone: {event.timezone}")
        lines.append(f"    Confidence: {event.confidence.overall:.2f}")


def _append_summary(lines: list[str], run: ExtractionRun) -> None:
    lines.append("")
    lines.append("--- SUMMARY ---")
    lines.append(f"  Events extracted: {len(run.events)}")
    lines.append(f"  Chunks dropped: {len(run.dropped)}")

    for outcome in run.dropped:
        lines.append(f"    - chunk {outcome.chunk.id}: {outcome.error}")

    lines.append(f"  Duration: {run.duration_seconds:.1f}s")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def format_event_time(start: datetime, end: datetime) -> str:
    """Format an event's time range for display.

    The end shows only the time of day when it falls on the start's date.
    """
    start_str = start.strftime(_TIME_FORMAT)
    if start.date() == end.date():
        end_str = end.strftime("%I:%M %p")
    else:
        end_str = end.strftime(_TIME_FORMAT)
    return f"{start_str} - {end_str}"

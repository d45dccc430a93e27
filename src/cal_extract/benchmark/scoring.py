"""Accuracy scorers for segmentation and event extraction.

Two scorers, each returning a :class:`ScoreResult`:

- :func:`score_segmentation` -- exact match of cleaned start-line lists.
- :func:`score_event_fields` -- per-field accuracy over ``title``,
  ``startDate``, ``endDate`` and ``location``.  Titles are compared with
  :func:`rapidfuzz.fuzz.token_set_ratio`; dates are compared as instants,
  so ``2025-06-11T14:00:00-04:00`` equals ``2025-06-11T18:00:00Z``.

Events are plain wire-format mappings (as produced by
:func:`cal_extract.api.event_summary_dict`), so expected values can be
written by hand in a cases file.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from rapidfuzz.fuzz import token_set_ratio

SCORED_FIELDS = ("title", "startDate", "endDate", "location")

# Minimum token_set_ratio (0-100) for two titles to count as equal.
TITLE_MATCH_THRESHOLD = 85.0


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ScoreResult:
    """Outcome of one scorer call.

    Attributes:
        passed: Whether the output matched completely.
        score: Fraction of matching units (0.0-1.0).
        reason: Human-readable explanation.
    """

    passed: bool
    score: float
    reason: str


# ---------------------------------------------------------------------------
# Segmentation
# ---------------------------------------------------------------------------


def clean_starts(values: Sequence[Any]) -> list[int]:
    """Keep integer entries (not bools), deduplicate and sort ascending."""
    return sorted(
        {value for value in values if isinstance(value, int) and not isinstance(value, bool)}
    )


def score_segmentation(expected: Sequence[Any], actual: Any) -> ScoreResult:
    """Score a segmentation output against the expected start lines.

    Args:
        expected: Expected 1-based start line numbers.
        actual: Either a ``{"starts": [...]}`` mapping (the raw wire
            format) or a plain sequence of start lines.

    Returns:
        ``score`` 1.0 on an exact match of the cleaned lists, else 0.0.
    """
    if isinstance(actual, Mapping):
        actual = actual.get("starts")
    if not isinstance(actual, Sequence) or isinstance(actual, str):
        return ScoreResult(False, 0.0, "Output missing starts array")

    want = clean_starts(expected)
    got = clean_starts(actual)
    if want == got:
        return ScoreResult(True, 1.0, "Matches")
    return ScoreResult(False, 0.0, f"Expected {want} got {got}")


# ---------------------------------------------------------------------------
# Event fields
# ---------------------------------------------------------------------------


def _as_instant(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _normalise_text(value: Any) -> str:
    return " ".join(str(value).split()).casefold() if value is not None else ""


def field_matches(name: str, expected: Any, actual: Any) -> bool:
    """Compare one field of an expected and an actual event."""
    if name == "title":
        want, got = _normalise_text(expected), _normalise_text(actual)
        if not want or not got:
            return want == got
        return token_set_ratio(want, got) >= TITLE_MATCH_THRESHOLD

    if name in ("startDate", "endDate"):
        want_at, got_at = _as_instant(expected), _as_instant(actual)
        if want_at is None or got_at is None:
            return expected == actual
        return want_at == got_at

    return _normalise_text(expected) == _normalise_text(actual)


def compare_event(
    expected: Mapping[str, Any],
    actual: Mapping[str, Any],
) -> tuple[int, list[str]]:
    """Compare two events over :data:`SCORED_FIELDS`.

    Returns:
        ``(matching_field_count, mismatched_field_names)``.
    """
    mismatches = [
        name
        for name in SCORED_FIELDS
        if not field_matches(name, expected.get(name), actual.get(name))
    ]
    return len(SCORED_FIELDS) - len(mismatches), mismatches


def _single(correct: int, mismatches: list[str], note: str = "") -> ScoreResult:
    total = len(SCORED_FIELDS)
    passed = correct == total
    reason = f"All fields match{note}" if passed else f"Mismatch: {', '.join(mismatches)}"
    return ScoreResult(passed, correct / total, reason)


def score_event_fields(expected: Any, actual: Any) -> ScoreResult:
    """Score extracted events against expected events.

    A single object and a one-element list are treated as equivalent.
    Lists are paired by index; a count mismatch scores 0.

    Args:
        expected: An event mapping or a list of them.
        actual: An event mapping or a list of them.

    Returns:
        The fraction of matching fields across all paired events.
    """
    expected_is_list = isinstance(expected, list)
    actual_is_list = isinstance(actual, list)

    if expected_is_list != actual_is_list:
        if expected_is_list and len(expected) == 1 and isinstance(actual, Mapping):
            return _single(*compare_event(expected[0], actual), " (len1 list vs object)")
        if actual_is_list and len(actual) == 1 and isinstance(expected, Mapping):
            return _single(*compare_event(expected, actual[0]), " (object vs len1 list)")
        return ScoreResult(
            False, 0.0, "Shape mismatch between expected and actual (list vs object)"
        )

    if not expected_is_list:
        if not isinstance(expected, Mapping) or not isinstance(actual, Mapping):
            return ScoreResult(False, 0.0, "Expected and actual must be event objects")
        return _single(*compare_event(expected, actual))

    if len(expected) != len(actual):
        return ScoreResult(
            False,
            0.0,
            f"Event count mismatch (expected {len(expected)}, got {len(actual)})",
        )
    if not expected:
        return ScoreResult(True, 1.0, "No events expected")

    total_correct = 0
    details: list[str] = []
    for index, (want, got) in enumerate(zip(expected, actual)):
        correct, mismatches = compare_event(want, got)
        total_correct += correct
        if mismatches:
            details.append(f"event {index}: {', '.join(mismatches)}")

    score = total_correct / (len(SCORED_FIELDS) * len(expected))
    passed = score == 1.0
    reason = "All events match" if passed else f"Mismatches: {'; '.join(details)}"
    return ScoreResult(passed, score, reason)

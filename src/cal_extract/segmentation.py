"""Segmentation engine: split multi-event text into per-event chunks.

Two ways to find the line where each event starts:

- :func:`segment` -- one model call returning ``{"starts": [...]}``.
- :func:`segment_with_rules` -- a deterministic implementation of the same
  segmentation policy (see :data:`~cal_extract.prompts.SEGMENTATION_RULES`)
  that needs no model.

Both paths pass their raw start list through :func:`normalize_starts`,
which enforces the parts of the policy that can be checked mechanically
(detail lines and blank lines never start a chunk, ascending, capped at
:data:`~cal_extract.prompts.MAX_SEGMENTS`).
"""

from __future__ import annotations

import json
import logging
import re

from cal_extract.exceptions import SegmentationError
from cal_extract.gateway import ModelGateway
from cal_extract.models.options import ProcessingOptions
from cal_extract.models.segment import SegmentChunk
from cal_extract.prompts import (
    DETAIL_LABELS,
    EVENT_KEYWORDS,
    HEADER_KEYWORDS,
    MAX_SEGMENTS,
    build_segmentation_prompt,
    number_lines,
)

logger = logging.getLogger(__name__)

_LINE_SPLIT = re.compile(r"\r?\n")
_FENCE = re.compile(r"```(?:json)?\s*|\s*```", re.IGNORECASE)

_DETAIL_LINE = re.compile(
    r"^\s*(?:" + "|".join(DETAIL_LABELS) + r")\s*:", re.IGNORECASE
)
_BULLET = re.compile(r"^\s*(?:[-•–—*·]|\d{1,2}[.)])\s+")
_HEADER_WORD = re.compile(r"\b(?:" + "|".join(HEADER_KEYWORDS) + r")\b", re.IGNORECASE)
_EVENT_WORD = re.compile(r"\b(?:" + "|".join(EVENT_KEYWORDS) + r")\b", re.IGNORECASE)
_DIGIT = re.compile(r"\d")

_MONTH = (
    r"(?:january|february|march|april|may|june|july|august|september|october"
    r"|november|december|jan|feb|mar|apr|jun|jul|aug|sept|sep|oct|nov|dec)\.?"
)
_WEEKDAY = (
    r"(?:monday|tuesday|wednesday|thursday|friday|saturday|sunday"
    r"|mon|tues|tue|wed|thurs|thur|thu|fri|sat|sun)"
)

_TIME_TOKEN = re.compile(
    r"\b\d{1,2}(?::\d{2})?\s*(?:am|pm|a\.m\.|p\.m\.)"
    r"|\b\d{1,2}:\d{2}\b"
    r"|\bat\s+\d{1,2}\b"
    r"|\b(?:noon|midnight)\b",
    re.IGNORECASE,
)
_CALENDAR_DATE_TOKEN = re.compile(
    r"\b\d{4}-\d{2}-\d{2}\b"
    r"|\b\d{1,2}/\d{1,2}(?:/\d{2,4})?\b"
    rf"|\b{_MONTH}\s+\d{{1,2}}\b"
    rf"|\b\d{{1,2}}(?:st|nd|rd|th)?\s+{_MONTH}"
    r"|\b(?:today|tonight|tomorrow)\b",
    re.IGNORECASE,
)
_WEEKDAY_TOKEN = re.compile(rf"\b{_WEEKDAY}\b", re.IGNORECASE)
_RECURRENCE = re.compile(
    rf"\b(?:every|each|daily|weekly|monthly)\b|\b{_WEEKDAY}\s*[/,&]\s*{_WEEKDAY}\b",
    re.IGNORECASE,
)


# ---------------------------------------------------------------------------
# Line classification
# ---------------------------------------------------------------------------


def split_lines(text: str) -> list[str]:
    """Split *text* on ``\\n`` or ``\\r\\n``."""
    return _LINE_SPLIT.split(text)


def is_blank(line: str) -> bool:
    return not line.strip()


def is_detail_line(line: str) -> bool:
    """Whether *line* is a ``When:``/``Where:``/... detail label line."""
    return bool(_DETAIL_LINE.match(line))


def is_bullet(line: str) -> bool:
    return bool(_BULLET.match(line))


def has_temporal_token(line: str) -> bool:
    """Whether *line* names a date, weekday, relative day or time of day."""
    return bool(
        _TIME_TOKEN.search(line)
        or _CALENDAR_DATE_TOKEN.search(line)
        or _WEEKDAY_TOKEN.search(line)
    )


def _bullet_body(line: str) -> str:
    return _BULLET.sub("", line, count=1)


def _next_content_line(lines: list[str], index: int) -> str | None:
    for line in lines[index + 1 :]:
        if not is_blank(line):
            return line
    return None


def _is_header(lines: list[str], index: int) -> bool:
    line = lines[index]
    if not _HEADER_WORD.search(line):
        return False
    if not _DIGIT.search(line):
        return True
    following = _next_content_line(lines, index)
    return following is not None and is_bullet(following)


def _has_event_keyword(line: str) -> bool:
    stripped = line.lstrip()
    first_alpha = next((char for char in stripped if char.isalpha()), "")
    return first_alpha.isupper() and bool(_EVENT_WORD.search(line))


def _opens_event(lines: list[str], index: int) -> bool:
    line = lines[index]
    if is_blank(line) or is_detail_line(line) or _is_header(lines, index):
        return False
    if is_bullet(line):
        body = _bullet_body(line)
        return bool(_DIGIT.search(body)) or has_temporal_token(body)
    return has_temporal_token(line) or _has_event_keyword(line)


def _same_paragraph(lines: list[str], first: int, last: int) -> bool:
    return not any(is_blank(line) for line in lines[first : last + 1])


def _continues_recurrence(lines: list[str], start_index: int, index: int) -> bool:
    """Whether line *index* only adds occurrences to a recurring event."""
    line = lines[index]
    if is_bullet(line) or not _same_paragraph(lines, start_index, index):
        return False
    if not _RECURRENCE.search(lines[start_index]):
        return False
    return not (_CALENDAR_DATE_TOKEN.search(line) or _has_event_keyword(line))


def _completes_previous(lines: list[str], start_index: int, index: int) -> bool:
    """Whether line *index* supplies the missing date/time of the event above."""
    line = lines[index]
    if is_bullet(line) or _has_event_keyword(line):
        return False
    if not _same_paragraph(lines, start_index, index):
        return False
    return not any(has_temporal_token(above) for above in lines[start_index:index])


def _headline_for(lines: list[str], index: int, starts: list[int]) -> int:
    """Return the index of the headline that introduces the event at *index*."""
    previous = index - 1
    if previous < 0 or is_bullet(lines[index]):
        return index
    line = lines[previous]
    if (
        is_blank(line)
        or is_detail_line(line)
        or is_bullet(line)
        or _is_header(lines, previous)
        or (previous + 1) in starts
    ):
        return index
    if previous == 0 or is_blank(lines[previous - 1]):
        return previous
    return index


# ---------------------------------------------------------------------------
# Start normalisation and chunk building
# ---------------------------------------------------------------------------


def _as_line_number(value: object) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


def normalize_starts(raw_starts: list[object], lines: list[str]) -> list[int]:
    """Turn a raw start list into a valid, policy-conforming one.

    Keeps integers within ``[1, len(lines)]``, moves a detail-line start back
    to the closest previous non-blank, non-detail line, moves a blank-line
    start forward to the next non-blank line, then deduplicates, sorts and
    caps the list at :data:`MAX_SEGMENTS` entries.  An empty result becomes
    ``[1]`` (the whole input is one event).

    Args:
        raw_starts: Start line numbers as decoded from the model (or any
            other source); non-integers are ignored.
        lines: The input lines the numbers refer to.

    Returns:
        A strictly ascending list of 1-based line numbers.
    """
    total = len(lines)
    cleaned: set[int] = set()

    for value in raw_starts:
        number = _as_line_number(value)
        if number is None or not 1 <= number <= total:
            continue

        index = number - 1
        if is_detail_line(lines[index]):
            index -= 1
            while index >= 0 and (is_blank(lines[index]) or is_detail_line(lines[index])):
                index -= 1
            if index < 0:
                continue
        elif is_blank(lines[index]):
            while index < total and is_blank(lines[index]):
                index += 1
            if index >= total:
                continue

        cleaned.add(index + 1)

    starts = sorted(cleaned)[:MAX_SEGMENTS]
    return starts or [1]


def build_chunks(lines: list[str], starts: list[int]) -> list[SegmentChunk]:
    """Build one :class:`SegmentChunk` per start.

    Each chunk runs from its start line up to the line before the next
    start (or the end of the input).

    Args:
        lines: The input lines.
        starts: Normalised start line numbers (see :func:`normalize_starts`).

    Returns:
        Chunks in line order, with ids ``"0"``, ``"1"``, ...
    """
    bounds = [*starts, len(lines) + 1]
    chunks: list[SegmentChunk] = []
    for position, (start, next_start) in enumerate(zip(bounds, bounds[1:])):
        chunks.append(
            SegmentChunk(
                id=str(position),
                text="\n".join(lines[start - 1 : next_start - 1]),
                start_line=start,
                end_line=next_start - 1,
            )
        )
    return chunks


def leading_context(lines: list[str], chunks: list[SegmentChunk]) -> str:
    """Return the non-blank lines before the first chunk (e.g. an agenda header)."""
    if not chunks:
        return ""
    preamble = lines[: chunks[0].start_line - 1]
    return "\n".join(line for line in preamble if not is_blank(line)).strip()


# ---------------------------------------------------------------------------
# Model-based segmentation
# ---------------------------------------------------------------------------


def parse_segmentation_response(raw_text: str) -> list[object]:
    """Decode a ``{"starts": [...]}`` response.

    Markdown fences around the JSON are tolerated.

    Raises:
        SegmentationError: If the text is not JSON or has no ``starts`` list.
    """
    cleaned = _FENCE.sub("", raw_text or "").strip()
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise SegmentationError(
            f"Invalid response: segmentation output is not JSON: {exc}",
            raw_response=raw_text,
        ) from exc

    if not isinstance(data, dict) or not isinstance(data.get("starts"), list):
        raise SegmentationError(
            "Invalid response: segmentation output has no 'starts' array",
            raw_response=raw_text,
        )
    return data["starts"]


async def segment(
    text: str,
    options: ProcessingOptions,
    gateway: ModelGateway,
) -> list[SegmentChunk]:
    """Segment *text* into event chunks with one model call.

    Args:
        text: Sanitised input text.
        options: Processing options (only the model identifier is used).
        gateway: Model gateway to call.

    Returns:
        Ordered chunks, at least one.

    Raises:
        SegmentationError: If the model response is malformed.
        ModelError: If the model call fails.
    """
    lines = split_lines(text)
    raw = await gateway.complete(build_segmentation_prompt(), number_lines(lines), options.model)
    logger.debug("Raw segmentation response: %s", raw)

    starts = normalize_starts(parse_segmentation_response(raw), lines)
    logger.info("Segmented %d line(s) into %d chunk(s): starts=%s", len(lines), len(starts), starts)
    return build_chunks(lines, starts)


# ---------------------------------------------------------------------------
# Rule-based segmentation
# ---------------------------------------------------------------------------


def rule_based_starts(lines: list[str]) -> list[int]:
    """Locate event starts with the deterministic segmentation rules.

    Args:
        lines: The input lines.

    Returns:
        Normalised start line numbers (see :func:`normalize_starts`).
    """
    starts: list[int] = []
    for index in range(len(lines)):
        if not _opens_event(lines, index):
            continue
        if starts and (
            _continues_recurrence(lines, starts[-1] - 1, index)
            or _completes_previous(lines, starts[-1] - 1, index)
        ):
            continue
        headline = _headline_for(lines, index, starts)
        starts.append(headline + 1)
    return normalize_starts(starts, lines)


def segment_with_rules(text: str) -> list[SegmentChunk]:
    """Segment *text* into event chunks without calling a model."""
    lines = split_lines(text)
    starts = rule_based_starts(lines)
    logger.info(
        "Rule-based segmentation of %d line(s): starts=%s", len(lines), starts
    )
    return build_chunks(lines, starts)

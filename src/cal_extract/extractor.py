"""Event extractor: one chunk of text in, one validated event out.

Decoding and validation are separate steps with a strict boundary between
them:

1. :func:`parse_response` decodes the raw model text into an untyped dict
   and checks only its structure.
2. :func:`validate_and_enhance_data` checks the event invariants, applies
   defaults and returns a fully typed :class:`ExtractedEventData`.

Either step raises a :class:`~cal_extract.exceptions.MalformedResponseError`
subclass; :class:`EventExtractor` turns those into a dropped chunk.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any
from zoneinfo import ZoneInfo

from pydantic import ValidationError as PydanticValidationError

from cal_extract.exceptions import MalformedResponseError, ValidationError
from cal_extract.gateway import ModelGateway
from cal_extract.models.event import (
    CONFIDENCE_FIELDS,
    DEFAULT_CONFIDENCE,
    ConfidenceScore,
    ExtractedEventData,
)
from cal_extract.models.options import ProcessingOptions, lookup_zone
from cal_extract.models.segment import SegmentChunk
from cal_extract.prompts import build_extraction_prompt, build_extraction_user_prompt

logger = logging.getLogger(__name__)

_FENCE = re.compile(r"```(?:json)?\s*|\s*```", re.IGNORECASE)
_TRUE_STRINGS = {"true", "1", "yes", "y"}


# ---------------------------------------------------------------------------
# Result record
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ChunkOutcome:
    """What happened to one chunk during extraction.

    Attributes:
        chunk: The chunk that was extracted.
        event: The validated event, or ``None`` if the chunk was dropped.
        raw_response: The model's raw text (empty if it was never called).
        error: Why the chunk was dropped, or ``None`` on success.
    """

    chunk: SegmentChunk
    event: ExtractedEventData | None = None
    raw_response: str = ""
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.event is not None


# ---------------------------------------------------------------------------
# Decode
# ---------------------------------------------------------------------------


def parse_response(raw_text: str) -> dict[str, Any]:
    """Decode a raw model response into an event dict.

    Markdown fences are stripped.  The decoded value must be a JSON object
    with a non-blank ``title`` and both ``startDate`` and ``endDate``.

    Args:
        raw_text: The raw model output.

    Returns:
        The decoded object.

    Raises:
        MalformedResponseError: If the text is not JSON or lacks the
            required structure.
    """
    cleaned = _FENCE.sub("", raw_text or "").strip()
    if not cleaned:
        raise MalformedResponseError("Invalid response: empty output", raw_response=raw_text)

    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise MalformedResponseError(
            f"Invalid response format: {exc}", raw_response=raw_text
        ) from exc

    if not isinstance(data, dict):
        raise MalformedResponseError(
            "Invalid response structure: expected a JSON object",
            raw_response=raw_text,
        )

    title = data.get("title")
    if not isinstance(title, str) or not title.strip():
        raise MalformedResponseError(
            "Invalid response structure: missing title", raw_response=raw_text
        )
    for key in ("startDate", "endDate"):
        if data.get(key) in (None, ""):
            raise MalformedResponseError(
                f"Invalid response structure: missing {key}", raw_response=raw_text
            )
    return data


# ---------------------------------------------------------------------------
# Validate
# ---------------------------------------------------------------------------


def _parse_timestamp(value: Any, zone: ZoneInfo) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        parsed = datetime.fromisoformat(value.strip())
    else:
        raise TypeError(f"unsupported timestamp type {type(value).__name__}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=zone)
    return parsed


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def normalize_confidence(raw: Any) -> ConfidenceScore:
    """Normalise the model's ``confidence`` value into a :class:`ConfidenceScore`.

    - A single number in ``[0, 1]`` is broadcast to every field.
    - An object has each present field checked; absent fields default to 0.5.
    - Anything else (absent, string, list) defaults every field to 0.5.

    Raises:
        ValidationError: If a number lies outside ``[0, 1]`` or an object
            field is not numeric.
    """
    if _is_number(raw):
        if not 0.0 <= raw <= 1.0:
            raise ValidationError("Invalid confidence score for overall")
        return ConfidenceScore.uniform(float(raw))

    if not isinstance(raw, dict):
        return ConfidenceScore()

    scores: dict[str, float] = {}
    for name in CONFIDENCE_FIELDS:
        if name not in raw or raw[name] is None:
            scores[name] = DEFAULT_CONFIDENCE
            continue
        value = raw[name]
        if not _is_number(value) or not 0.0 <= value <= 1.0:
            raise ValidationError(f"Invalid confidence score for {name}")
        scores[name] = float(value)
    return ConfidenceScore.model_validate(scores)


def _coerce_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    return bool(value)


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def validate_and_enhance_data(
    data: dict[str, Any],
    default_timezone: str = "UTC",
) -> ExtractedEventData:
    """Validate a decoded event dict and fill in defaults.

    Timestamps without an offset are interpreted in the event's own
    ``timezone`` when it is a known IANA zone, otherwise in
    *default_timezone*, otherwise in UTC.  The event's ``timezone`` is set
    to the zone actually used.

    Args:
        data: The decoded model output (see :func:`parse_response`).
        default_timezone: Zone used when the payload names no known zone.

    Returns:
        A typed, validated :class:`ExtractedEventData`.

    Raises:
        ValidationError: On unparseable dates, ``endDate <= startDate`` or
            out-of-range confidence scores.
    """
    zone = (
        lookup_zone(_text(data.get("timezone")).strip())
        or lookup_zone(default_timezone)
        or ZoneInfo("UTC")
    )

    try:
        start = _parse_timestamp(data.get("startDate"), zone)
        end = _parse_timestamp(data.get("endDate"), zone)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"Invalid date format in extracted data: {exc}") from exc

    if end <= start:
        raise ValidationError("End date must be after start date")

    confidence = normalize_confidence(data.get("confidence"))

    recurrence = data.get("recurrence")
    if not isinstance(recurrence, str) or not recurrence.strip():
        recurrence = None

    try:
        return ExtractedEventData(
            title=_text(data.get("title")).strip(),
            description=_text(data.get("description")),
            start_date=start,
            end_date=end,
            location=_text(data.get("location")),
            timezone=zone.key,
            summary=_text(data.get("summary")),
            confidence=confidence,
            is_all_day=_coerce_bool(data.get("isAllDay")),
            recurrence=recurrence,
        )
    except PydanticValidationError as exc:
        raise ValidationError(f"Invalid extracted event: {exc}") from exc


# ---------------------------------------------------------------------------
# Extractor
# ---------------------------------------------------------------------------


class EventExtractor:
    """Extract one event per chunk through a :class:`ModelGateway`.

    Args:
        gateway: The model gateway (normally a retrying Gemini gateway).
    """

    def __init__(self, gateway: ModelGateway) -> None:
        self._gateway = gateway

    async def extract_one(
        self,
        chunk: SegmentChunk,
        options: ProcessingOptions,
        context: str = "",
    ) -> ExtractedEventData | None:
        """Extract the event described by *chunk*, or ``None`` if it is dropped."""
        outcome = await self.extract_chunk(chunk, options, context=context)
        return outcome.event

    async def extract_chunk(
        self,
        chunk: SegmentChunk,
        options: ProcessingOptions,
        context: str = "",
    ) -> ChunkOutcome:
        """Extract *chunk* and report the outcome.

        Empty chunks, unparseable responses and failed validation all
        produce an outcome without an event; they are logged, not raised.

        Args:
            chunk: The chunk to extract.
            options: Processing options for the request.
            context: Optional preamble (such as an agenda header) shared by
                every chunk of the input.

        Returns:
            A :class:`ChunkOutcome`.

        Raises:
            ModelError: If the model call itself fails.
        """
        if not chunk.text.strip():
            logger.info("Skipping chunk %s: no text", chunk.id)
            return ChunkOutcome(chunk=chunk, error="empty chunk")

        raw = await self.request(chunk, options, context=context)

        try:
            event = self.build_event(raw, chunk, options)
        except MalformedResponseError as exc:
            logger.warning(
                "Dropping chunk %s (lines %d-%d): %s",
                chunk.id,
                chunk.start_line,
                chunk.end_line,
                exc,
            )
            return ChunkOutcome(chunk=chunk, raw_response=raw, error=str(exc))

        logger.info(
            "Extracted event from chunk %s: '%s' | %s -> %s | confidence=%.2f",
            chunk.id,
            event.title,
            event.start_date.isoformat(),
            event.end_date.isoformat(),
            event.confidence.overall,
        )
        return ChunkOutcome(chunk=chunk, event=event, raw_response=raw)

    def build_event(
        self,
        raw: str,
        chunk: SegmentChunk,
        options: ProcessingOptions,
    ) -> ExtractedEventData:
        """Decode and validate *raw*, attaching the chunk's text.

        Raises:
            MalformedResponseError: If decoding or validation fails.
        """
        data = parse_response(raw)
        event = validate_and_enhance_data(data, default_timezone=options.timezone)
        return event.model_copy(update={"original_text": chunk.text.strip()})

    async def request(
        self,
        chunk: SegmentChunk,
        options: ProcessingOptions,
        context: str = "",
    ) -> str:
        """Send *chunk* to the model and return the raw response text.

        Raises:
            ModelError: If the model call fails.
        """
        user_text = build_extraction_user_prompt(chunk.text)
        if context:
            user_text = f"Context shared by all events:\n{context}\n\n{user_text}"
        raw = await self._gateway.complete(
            build_extraction_prompt(options), user_text, options.model
        )
        logger.debug("Raw extraction response for chunk %s:\n%s", chunk.id, raw)
        return raw

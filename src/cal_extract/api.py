"""Request/response contract for the parse-events endpoint.

Framework-free handlers: each takes the request body (raw JSON or an
already-decoded mapping) and returns an :class:`ApiResponse` holding an
HTTP status and a JSON-serialisable body.  Any web framework can mount
them by forwarding the body and returning ``response.body`` with
``response.status``.

Every failure becomes ``{"error": "<message>"}`` with a status from
:func:`error_response`; exceptions never escape the handlers.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from cal_extract.config import Settings, load_settings
from cal_extract.exceptions import (
    ConfigurationError,
    InputError,
    MalformedResponseError,
    ModelError,
    NoEventsError,
)
from cal_extract.gateway import ModelGateway, build_gateway
from cal_extract.models.event import ExtractedEventData
from cal_extract.models.options import ProcessingOptions
from cal_extract.pipeline import extract_event_details, run_extraction

logger = logging.getLogger(__name__)

TEXT_REQUIRED = "Text input is required"
NOT_CONFIGURED = "AI service not configured properly"
TEMPORARILY_UNAVAILABLE = "AI service temporarily unavailable. Please try again in a moment."
COULD_NOT_PARSE = (
    "Could not parse the text. Please try rephrasing or providing more specific details."
)
GENERIC_FAILURE = "Failed to process text. Please try again."


@dataclass(frozen=True)
class ApiResponse:
    """An HTTP status plus a JSON-serialisable body."""

    status: int
    body: dict[str, Any]


class _BadRequest(Exception):
    """Internal signal for a request rejected before any processing."""


# ---------------------------------------------------------------------------
# Request decoding
# ---------------------------------------------------------------------------


def _decode_body(body: str | bytes | Mapping[str, Any]) -> Mapping[str, Any]:
    if isinstance(body, Mapping):
        return body
    payload = json.loads(body)
    if not isinstance(payload, Mapping):
        raise ValueError("Request body must be a JSON object")
    return payload


def _require_text(payload: Mapping[str, Any]) -> str:
    text = payload.get("text")
    if not isinstance(text, str) or not text.strip():
        raise _BadRequest(TEXT_REQUIRED)
    return text.strip()


def _parse_current_date(value: Any) -> datetime:
    if value in (None, ""):
        return datetime.now(timezone.utc)
    if not isinstance(value, str):
        raise ValueError(f"currentDate must be an ISO 8601 string, got {value!r}")
    parsed = datetime.fromisoformat(value.strip())
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def build_options(
    raw_options: Any,
    settings: Settings,
    multi_event: bool = True,
) -> ProcessingOptions:
    """Build :class:`ProcessingOptions` from the request's ``options`` object.

    Missing values fall back to *settings*.

    Raises:
        ValueError: If ``currentDate`` is not a valid ISO 8601 string.
    """
    raw = raw_options if isinstance(raw_options, Mapping) else {}
    prefs = raw.get("userPreferences")
    prefs = prefs if isinstance(prefs, Mapping) else {}

    duration = prefs.get("defaultDuration")
    if not isinstance(duration, int) or isinstance(duration, bool) or duration <= 0:
        duration = settings.default_duration

    tz_name = raw.get("timezone")
    if not isinstance(tz_name, str) or not tz_name.strip():
        tz_name = settings.timezone

    return ProcessingOptions(
        timezone=tz_name.strip(),
        current_date=_parse_current_date(raw.get("currentDate")),
        default_duration=duration,
        model=settings.model,
        multi_event=multi_event,
    )


# ---------------------------------------------------------------------------
# Response shaping
# ---------------------------------------------------------------------------


def _iso(value: datetime) -> str:
    """UTC ISO 8601 with millisecond precision and a ``Z`` suffix."""
    utc = value.astimezone(timezone.utc)
    return utc.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def event_summary_dict(event: ExtractedEventData) -> dict[str, Any]:
    """Serialise *event* for the multi-event response (scalar confidence)."""
    return {
        "title": event.title,
        "description": event.description,
        "startDate": _iso(event.start_date),
        "endDate": _iso(event.end_date),
        "location": event.location,
        "timezone": event.timezone,
        "summary": event.summary,
        "confidence": event.confidence.overall,
    }


def event_detail_dict(event: ExtractedEventData, event_id: str = "1") -> dict[str, Any]:
    """Serialise *event* for the single-event response (full confidence)."""
    return {
        "id": event_id,
        "title": event.title,
        "description": event.description,
        "startDate": _iso(event.start_date),
        "endDate": _iso(event.end_date),
        "location": event.location,
        "timezone": event.timezone,
        "isAllDay": event.is_all_day,
        "recurrence": event.recurrence,
        "confidence": event.confidence.model_dump(by_alias=True),
    }


def error_response(exc: BaseException) -> ApiResponse:
    """Map an exception to a structured error response.

    ============================================  ======  =========================
    Exception                                     Status  Message
    ============================================  ======  =========================
    :class:`InputError`                           400     text required
    :class:`ConfigurationError`                   500     not configured
    retryable :class:`ModelError`                 429     temporarily unavailable
    :class:`MalformedResponseError`,
    :class:`ValidationError`,
    :class:`NoEventsError`                        422     could not parse
    anything else                                 500     generic failure
    ============================================  ======  =========================

    :class:`ValidationError` (unparseable dates, an end before the start)
    is a :class:`MalformedResponseError`, so an invalid event on the
    single-event path answers 422 like an undecodable one.
    """
    if isinstance(exc, (InputError, _BadRequest)):
        return ApiResponse(400, {"error": TEXT_REQUIRED})
    if isinstance(exc, ConfigurationError):
        logger.error("AI service misconfigured: %s", exc)
        return ApiResponse(500, {"error": NOT_CONFIGURED})
    if isinstance(exc, ModelError) and exc.retryable:
        logger.error("AI service unavailable: %s", exc)
        return ApiResponse(429, {"error": TEMPORARILY_UNAVAILABLE})
    if isinstance(exc, (MalformedResponseError, NoEventsError)):
        logger.warning("Could not parse text: %s", exc)
        return ApiResponse(422, {"error": COULD_NOT_PARSE})

    logger.error("AI parsing error: %s", exc, exc_info=exc)
    return ApiResponse(500, {"error": GENERIC_FAILURE})


def _elapsed_ms(start: float) -> int:
    return round((time.monotonic() - start) * 1000)


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def handle_parse_events(
    body: str | bytes | Mapping[str, Any],
    *,
    settings: Settings | None = None,
    gateway: ModelGateway | None = None,
) -> ApiResponse:
    """Handle a multi-event parse request.

    Args:
        body: The request body.
        settings: Settings to use (loaded from the environment if omitted).
        gateway: Gateway to use (built from *settings* if omitted).

    Returns:
        ``{success, events, processingTimeMs, debug?}`` with status 200, or an
        error response.
    """
    start = time.monotonic()
    try:
        payload = _decode_body(body)
        text = _require_text(payload)
        settings = settings or load_settings()
        gateway = gateway or build_gateway(settings)
        options = build_options(payload.get("options"), settings)

        run = await run_extraction(
            text, options, gateway, segmentation=settings.segmentation_mode
        )
    except Exception as exc:
        return error_response(exc)

    response: dict[str, Any] = {
        "success": True,
        "events": [event_summary_dict(event) for event in run.events],
        "processingTimeMs": _elapsed_ms(start),
    }
    if not settings.is_production:
        response["debug"] = run.debug_report()
    return ApiResponse(200, response)


async def handle_parse_event(
    body: str | bytes | Mapping[str, Any],
    *,
    settings: Settings | None = None,
    gateway: ModelGateway | None = None,
) -> ApiResponse:
    """Handle a single-event parse request.

    Returns:
        ``{success, event, processingTimeMs}`` with status 200, or an error
        response.
    """
    start = time.monotonic()
    try:
        payload = _decode_body(body)
        text = _require_text(payload)
        settings = settings or load_settings()
        gateway = gateway or build_gateway(settings)
        options = build_options(payload.get("options"), settings, multi_event=False)

        event = await extract_event_details(text, options, gateway)
    except Exception as exc:
        return error_response(exc)

    return ApiResponse(
        200,
        {
            "success": True,
            "event": event_detail_dict(event),
            "processingTimeMs": _elapsed_ms(start),
        },
    )


def describe_endpoint() -> dict[str, Any]:
    """Self-description returned for ``GET`` requests."""
    return {
        "message": "AI Parse Events API",
        "methods": ["POST"],
        "description": "Send text to extract calendar events using AI",
        "example": {
            "text": "Meeting tomorrow at 2pm",
            "options": {
                "timezone": "America/New_York",
                "currentDate": "2024-01-15T00:00:00Z",
            },
        },
    }

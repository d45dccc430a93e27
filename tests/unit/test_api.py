"""Tests for the parse-events request/response contract."""

from __future__ import annotations

import asyncio
import json
from unittest.mock import patch

import pytest

from cal_extract.api import (
    COULD_NOT_PARSE,
    GENERIC_FAILURE,
    NOT_CONFIGURED,
    TEMPORARILY_UNAVAILABLE,
    TEXT_REQUIRED,
    ApiResponse,
    build_options,
    describe_endpoint,
    error_response,
    handle_parse_event,
    handle_parse_events,
)
from cal_extract.config import Settings
from cal_extract.exceptions import (
    ConfigurationError,
    InputError,
    ModelError,
    NoEventsError,
    SegmentationError,
    ValidationError,
)

_SETTINGS = Settings(gemini_api_key="test-key")
_PRODUCTION = Settings(gemini_api_key="test-key", app_env="production")


def _post(body, gateway, settings: Settings = _SETTINGS) -> ApiResponse:
    return asyncio.run(handle_parse_events(body, settings=settings, gateway=gateway))


# ---------------------------------------------------------------------------
# Multi-event endpoint
# ---------------------------------------------------------------------------


class TestHandleParseEvents:
    def test_success_shape(self, make_gateway) -> None:
        gateway = make_gateway()

        response = _post({"text": "Team meeting tomorrow at 2pm"}, gateway)

        assert response.status == 200
        assert response.body["success"] is True
        assert isinstance(response.body["processingTimeMs"], int)
        event = response.body["events"][0]
        assert set(event) == {
            "title",
            "description",
            "startDate",
            "endDate",
            "location",
            "timezone",
            "summary",
            "confidence",
        }
        assert event["confidence"] == 0.85

    def test_dates_serialised_as_utc(self, make_gateway) -> None:
        response = _post({"text": "Team meeting tomorrow at 2pm"}, make_gateway())

        event = response.body["events"][0]
        assert event["startDate"] == "2025-06-12T18:00:00.000Z"
        assert event["endDate"] == "2025-06-12T19:00:00.000Z"

    def test_accepts_raw_json_body(self, make_gateway) -> None:
        body = json.dumps({"text": "Lunch 1pm"}).encode()

        assert _post(body, make_gateway()).status == 200

    def test_debug_included_outside_production(self, make_gateway) -> None:
        response = _post({"text": "Lunch 1pm"}, make_gateway())

        assert response.body["debug"].startswith("segmentation: starts=[1]")

    def test_debug_omitted_in_production(self, make_gateway) -> None:
        response = _post({"text": "Lunch 1pm"}, make_gateway(), settings=_PRODUCTION)

        assert "debug" not in response.body

    @pytest.mark.parametrize("body", [{}, {"text": ""}, {"text": "   "}, {"text": 42}])
    def test_missing_text_is_400(self, make_gateway, body: dict) -> None:
        gateway = make_gateway()

        response = _post(body, gateway)

        assert response.status == 400
        assert response.body == {"error": TEXT_REQUIRED}
        assert gateway.calls == []

    def test_text_blank_after_sanitising_is_400(self, make_gateway) -> None:
        gateway = make_gateway()

        response = _post({"text": "<script>x()</script>"}, gateway)

        assert response.status == 400
        assert gateway.calls == []

    def test_malformed_json_is_500(self, make_gateway) -> None:
        response = _post("{not json", make_gateway())

        assert response.status == 500
        assert response.body == {"error": GENERIC_FAILURE}

    def test_missing_api_key_is_500(self, clean_env: None) -> None:
        response = asyncio.run(handle_parse_events({"text": "Lunch 1pm"}))

        assert response.status == 500
        assert response.body == {"error": NOT_CONFIGURED}

    def test_rate_limit_is_429(self, make_gateway) -> None:
        gateway = make_gateway(segmentation=ModelError("quota", status_code=429))

        response = _post({"text": "Lunch 1pm"}, gateway)

        assert response.status == 429
        assert response.body == {"error": TEMPORARILY_UNAVAILABLE}

    def test_segmentation_failure_is_422(self, make_gateway) -> None:
        response = _post({"text": "Lunch 1pm"}, make_gateway(segmentation="nope"))

        assert response.status == 422
        assert response.body == {"error": COULD_NOT_PARSE}

    def test_no_events_is_422(self, make_gateway) -> None:
        response = _post({"text": "Lunch 1pm"}, make_gateway(extract=lambda _t: "[]"))

        assert response.status == 422

    def test_invalid_current_date_is_500(self, make_gateway) -> None:
        body = {"text": "Lunch 1pm", "options": {"currentDate": "yesterday-ish"}}

        assert _post(body, make_gateway()).status == 500

    def test_options_reach_the_prompt(self, make_gateway) -> None:
        gateway = make_gateway()
        body = {
            "text": "Lunch 1pm",
            "options": {
                "timezone": "America/New_York",
                "currentDate": "2024-01-15T00:00:00Z",
                "userPreferences": {"defaultDuration": 30},
            },
        }

        _post(body, gateway)

        system_prompt = gateway.extraction_calls[0][0]
        assert "2024-01-14T19:00:00-05:00" in system_prompt
        assert "30 minutes" in system_prompt

    def test_zone_directory_timezone_falls_back_to_utc(self, make_gateway) -> None:
        gateway = make_gateway()
        body = {
            "text": "Lunch 1pm",
            "options": {"timezone": "Etc", "currentDate": "2024-01-15T00:00:00Z"},
        }

        response = _post(body, gateway)

        assert response.status == 200
        assert "2024-01-15T00:00:00+00:00" in gateway.extraction_calls[0][0]

    def test_rules_mode_skips_segmentation_call(self, make_gateway) -> None:
        gateway = make_gateway()
        settings = Settings(gemini_api_key="test-key", segmentation_mode="rules")

        response = _post({"text": "Lunch 1pm"}, gateway, settings=settings)

        assert response.status == 200
        assert gateway.segmentation_calls == []


# ---------------------------------------------------------------------------
# Single-event endpoint
# ---------------------------------------------------------------------------


class TestHandleParseEvent:
    def test_success_shape(self, make_gateway) -> None:
        gateway = make_gateway()

        response = asyncio.run(
            handle_parse_event({"text": "Team meeting"}, settings=_SETTINGS, gateway=gateway)
        )

        assert response.status == 200
        event = response.body["event"]
        assert event["id"] == "1"
        assert event["isAllDay"] is False
        assert event["recurrence"] is None
        assert event["confidence"]["startDate"] == 0.9
        assert event["confidence"]["overall"] == 0.85
        assert gateway.segmentation_calls == []

    def test_invalid_event_is_422(self, make_gateway, event_json) -> None:
        bad = event_json(endDate="2025-06-12T13:00:00-04:00")
        gateway = make_gateway(extract=lambda _t: bad)

        response = asyncio.run(
            handle_parse_event({"text": "Team meeting"}, settings=_SETTINGS, gateway=gateway)
        )

        assert response.status == 422


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class TestErrorResponse:
    @pytest.mark.parametrize(
        ("exc", "status", "message"),
        [
            (InputError("blank"), 400, TEXT_REQUIRED),
            (ConfigurationError("no key"), 500, NOT_CONFIGURED),
            (ModelError("quota", status_code=429), 429, TEMPORARILY_UNAVAILABLE),
            (ModelError("down", status_code=503), 429, TEMPORARILY_UNAVAILABLE),
            (ModelError("bad", status_code=400), 500, GENERIC_FAILURE),
            (SegmentationError("bad"), 422, COULD_NOT_PARSE),
            (ValidationError("bad"), 422, COULD_NOT_PARSE),
            (NoEventsError(), 422, COULD_NOT_PARSE),
            (RuntimeError("bug"), 500, GENERIC_FAILURE),
        ],
    )
    def test_mapping(self, exc: Exception, status: int, message: str) -> None:
        response = error_response(exc)

        assert response.status == status
        assert response.body == {"error": message}


class TestBuildOptions:
    def test_defaults_from_settings(self) -> None:
        settings = Settings(gemini_api_key="k", timezone="Europe/Paris", default_duration=45)

        options = build_options(None, settings)

        assert options.timezone == "Europe/Paris"
        assert options.default_duration == 45
        assert options.model == settings.model
        assert options.multi_event is True

    @pytest.mark.parametrize("duration", [0, -5, "30", True, None])
    def test_invalid_duration_falls_back(self, duration: object) -> None:
        options = build_options({"userPreferences": {"defaultDuration": duration}}, _SETTINGS)

        assert options.default_duration == 60

    def test_naive_current_date_is_utc(self) -> None:
        options = build_options({"currentDate": "2024-01-15T00:00:00"}, _SETTINGS)

        assert options.current_date.utcoffset().total_seconds() == 0


def test_describe_endpoint() -> None:
    payload = describe_endpoint()

    assert payload["methods"] == ["POST"]
    assert payload["example"]["options"]["timezone"] == "America/New_York"


@patch("cal_extract.api.build_gateway")
def test_gateway_built_from_settings_when_omitted(mock_build, make_gateway) -> None:
    mock_build.return_value = make_gateway()

    response = asyncio.run(handle_parse_events({"text": "Lunch 1pm"}, settings=_SETTINGS))

    assert response.status == 200
    mock_build.assert_called_once_with(_SETTINGS)

"""Tests for the event extractor: decoding, validation and per-chunk outcomes."""

from __future__ import annotations

import asyncio
import json
from datetime import datetime, timedelta

import pytest

from cal_extract.exceptions import MalformedResponseError, ModelError, ValidationError
from cal_extract.extractor import (
    EventExtractor,
    normalize_confidence,
    parse_response,
    validate_and_enhance_data,
)
from cal_extract.models.event import ConfidenceScore
from cal_extract.models.options import ProcessingOptions
from cal_extract.models.segment import SegmentChunk

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _data(**overrides: object) -> dict[str, object]:
    data: dict[str, object] = {
        "title": "Team meeting",
        "startDate": "2025-06-12T14:00:00-04:00",
        "endDate": "2025-06-12T15:00:00-04:00",
        "timezone": "America/New_York",
    }
    data.update(overrides)
    return data


def _chunk(text: str = "Team meeting tomorrow at 2pm") -> SegmentChunk:
    return SegmentChunk(id="0", text=text, start_line=1, end_line=1)


# ---------------------------------------------------------------------------
# parse_response
# ---------------------------------------------------------------------------


class TestParseResponse:
    def test_plain_object(self) -> None:
        assert parse_response(json.dumps(_data()))["title"] == "Team meeting"

    def test_fenced_object(self) -> None:
        raw = "```json\n" + json.dumps(_data()) + "\n```"

        assert parse_response(raw)["startDate"] == "2025-06-12T14:00:00-04:00"

    def test_not_json_raises(self) -> None:
        with pytest.raises(MalformedResponseError, match="Invalid response format"):
            parse_response("Team meeting at 2pm")

    def test_empty_raises(self) -> None:
        with pytest.raises(MalformedResponseError, match="Invalid response"):
            parse_response("  ")

    def test_array_raises(self) -> None:
        with pytest.raises(MalformedResponseError, match="expected a JSON object"):
            parse_response(json.dumps([_data()]))

    @pytest.mark.parametrize("missing", ["title", "startDate", "endDate"])
    def test_missing_required_key_raises(self, missing: str) -> None:
        data = _data()
        del data[missing]

        with pytest.raises(MalformedResponseError, match=missing):
            parse_response(json.dumps(data))

    def test_blank_title_raises(self) -> None:
        with pytest.raises(MalformedResponseError, match="title"):
            parse_response(json.dumps(_data(title="  ")))

    def test_raw_response_is_kept(self) -> None:
        with pytest.raises(MalformedResponseError) as exc_info:
            parse_response("nope")

        assert exc_info.value.raw_response == "nope"


# ---------------------------------------------------------------------------
# Confidence
# ---------------------------------------------------------------------------


class TestNormalizeConfidence:
    def test_scalar_is_broadcast(self) -> None:
        score = normalize_confidence(0.7)

        assert score == ConfidenceScore.uniform(0.7)
        assert score.start_date == 0.7

    def test_scalar_out_of_range_raises(self) -> None:
        with pytest.raises(ValidationError, match="overall"):
            normalize_confidence(1.5)

    def test_object_missing_fields_default(self) -> None:
        score = normalize_confidence({"title": 0.9, "overall": 0.8})

        assert score.title == 0.9
        assert score.overall == 0.8
        assert score.location == 0.5

    def test_object_field_out_of_range_raises(self) -> None:
        with pytest.raises(ValidationError, match="Invalid confidence score for startDate"):
            normalize_confidence({"startDate": -0.1})

    def test_object_field_not_numeric_raises(self) -> None:
        with pytest.raises(ValidationError, match="Invalid confidence score for title"):
            normalize_confidence({"title": "high"})

    @pytest.mark.parametrize("raw", [None, "high", [0.9], True])
    def test_malformed_defaults_everywhere(self, raw: object) -> None:
        assert normalize_confidence(raw) == ConfidenceScore()


# ---------------------------------------------------------------------------
# validate_and_enhance_data
# ---------------------------------------------------------------------------


class TestValidateAndEnhanceData:
    def test_valid_event(self) -> None:
        event = validate_and_enhance_data(_data(location="Room A", confidence=0.9))

        assert event.title == "Team meeting"
        assert event.location == "Room A"
        assert event.duration_minutes == 60
        assert event.confidence.overall == 0.9
        assert event.end_date > event.start_date

    def test_defaults_applied(self) -> None:
        event = validate_and_enhance_data(_data(timezone=None))

        assert event.description == ""
        assert event.location == ""
        assert event.summary == ""
        assert event.timezone == "UTC"
        assert event.recurrence is None
        assert event.is_all_day is False
        assert event.confidence == ConfidenceScore()

    def test_end_before_start_raises(self) -> None:
        data = _data(endDate="2025-06-12T13:00:00-04:00")

        with pytest.raises(ValidationError, match="End date must be after start date"):
            validate_and_enhance_data(data)

    def test_end_equal_start_raises(self) -> None:
        data = _data(endDate="2025-06-12T14:00:00-04:00")

        with pytest.raises(ValidationError, match="End date must be after start date"):
            validate_and_enhance_data(data)

    def test_unparseable_date_raises(self) -> None:
        with pytest.raises(ValidationError, match="Invalid date format"):
            validate_and_enhance_data(_data(startDate="next Tuesday"))

    def test_numeric_date_raises(self) -> None:
        with pytest.raises(ValidationError, match="Invalid date format"):
            validate_and_enhance_data(_data(startDate=1718200000))

    def test_naive_dates_use_event_timezone(self) -> None:
        event = validate_and_enhance_data(
            _data(startDate="2025-06-12T14:00:00", endDate="2025-06-12T15:00:00")
        )

        assert event.start_date.utcoffset() == timedelta(hours=-4)

    def test_naive_dates_fall_back_to_default_timezone(self) -> None:
        event = validate_and_enhance_data(
            _data(startDate="2025-01-10T09:00:00", endDate="2025-01-10T10:00:00", timezone=""),
            default_timezone="Europe/Berlin",
        )

        assert event.start_date.utcoffset() == timedelta(hours=1)
        assert event.timezone == "Europe/Berlin"

    @pytest.mark.parametrize("name", ["Eastern Time", "America"])
    def test_unknown_payload_zone_falls_back_to_default_timezone(self, name: str) -> None:
        event = validate_and_enhance_data(
            _data(startDate="2025-06-12T15:00:00", endDate="2025-06-12T16:00:00", timezone=name),
            default_timezone="America/New_York",
        )

        assert event.start_date.utcoffset() == timedelta(hours=-4)
        assert event.timezone == "America/New_York"

    def test_unknown_zones_fall_back_to_utc(self) -> None:
        event = validate_and_enhance_data(
            _data(startDate="2025-06-12T15:00:00", endDate="2025-06-12T16:00:00", timezone="Etc"),
            default_timezone="Mars/Olympus",
        )

        assert event.start_date.utcoffset() == timedelta(0)
        assert event.timezone == "UTC"

    def test_utc_z_suffix_is_accepted(self) -> None:
        event = validate_and_enhance_data(
            _data(startDate="2025-06-12T18:00:00Z", endDate="2025-06-12T19:00:00Z")
        )

        assert event.start_date == datetime.fromisoformat("2025-06-12T14:00:00-04:00")

    @pytest.mark.parametrize(("raw", "expected"), [("true", True), ("yes", True), ("0", False), (1, True)])
    def test_is_all_day_coerced(self, raw: object, expected: bool) -> None:
        assert validate_and_enhance_data(_data(isAllDay=raw)).is_all_day is expected

    def test_blank_recurrence_becomes_none(self) -> None:
        assert validate_and_enhance_data(_data(recurrence="  ")).recurrence is None

    def test_recurrence_kept(self) -> None:
        event = validate_and_enhance_data(_data(recurrence="Every Monday"))

        assert event.recurrence == "Every Monday"

    def test_confidence_out_of_range_raises(self) -> None:
        with pytest.raises(ValidationError, match="Invalid confidence score for location"):
            validate_and_enhance_data(_data(confidence={"location": 2}))


# ---------------------------------------------------------------------------
# EventExtractor
# ---------------------------------------------------------------------------


class TestEventExtractor:
    def test_extract_one_returns_event_with_original_text(self, make_gateway, event_json) -> None:
        gateway = make_gateway(extract=lambda _text: event_json())
        chunk = _chunk("  Team meeting tomorrow at 2pm  ")

        event = asyncio.run(EventExtractor(gateway).extract_one(chunk, ProcessingOptions()))

        assert event is not None
        assert event.title == "Team meeting"
        assert event.original_text == "Team meeting tomorrow at 2pm"

    def test_empty_chunk_skips_model(self, make_gateway) -> None:
        gateway = make_gateway()

        outcome = asyncio.run(
            EventExtractor(gateway).extract_chunk(_chunk("   "), ProcessingOptions())
        )

        assert outcome.event is None
        assert outcome.error == "empty chunk"
        assert gateway.calls == []

    def test_bad_json_is_dropped(self, make_gateway) -> None:
        gateway = make_gateway(extract=lambda _text: "not json")

        outcome = asyncio.run(EventExtractor(gateway).extract_chunk(_chunk(), ProcessingOptions()))

        assert outcome.succeeded is False
        assert outcome.raw_response == "not json"
        assert "Invalid response" in (outcome.error or "")

    def test_invalid_event_is_dropped(self, make_gateway, event_json) -> None:
        bad = event_json(endDate="2025-06-12T13:00:00-04:00")
        gateway = make_gateway(extract=lambda _text: bad)

        event = asyncio.run(EventExtractor(gateway).extract_one(_chunk(), ProcessingOptions()))

        assert event is None

    def test_model_error_propagates(self, make_gateway) -> None:
        gateway = make_gateway(extract=ModelError("down", status_code=503))

        with pytest.raises(ModelError):
            asyncio.run(EventExtractor(gateway).extract_chunk(_chunk(), ProcessingOptions()))

    def test_context_is_prepended(self, make_gateway) -> None:
        gateway = make_gateway()

        asyncio.run(
            EventExtractor(gateway).extract_chunk(
                _chunk("- Breakfast 9"), ProcessingOptions(), context="Agenda 14 Feb:"
            )
        )

        user_text = gateway.calls[0][1]
        assert user_text.startswith("Context shared by all events:\nAgenda 14 Feb:")
        assert user_text.endswith("- Breakfast 9")

    def test_prompt_carries_options(self, make_gateway) -> None:
        gateway = make_gateway()
        options = ProcessingOptions(
            timezone="America/New_York",
            current_date=datetime.fromisoformat("2025-06-11T17:00:00+00:00"),
            default_duration=45,
            model="gemini-2.5-flash",
        )

        asyncio.run(EventExtractor(gateway).extract_chunk(_chunk(), options))

        system_prompt, _user, model = gateway.calls[0]
        assert model == "gemini-2.5-flash"
        assert "2025-06-11T13:00:00-04:00" in system_prompt
        assert "America/New_York" in system_prompt
        assert "45 minutes" in system_prompt

"""Tests for the segmentation and extraction prompt builders."""

from __future__ import annotations

from datetime import datetime, timezone

from cal_extract.models.options import ProcessingOptions
from cal_extract.prompts import (
    EVENT_KEYS,
    MAX_SEGMENTS,
    build_extraction_prompt,
    build_extraction_user_prompt,
    build_segmentation_prompt,
    number_lines,
)


def _options(**overrides: object) -> ProcessingOptions:
    values: dict[str, object] = {
        "timezone": "America/New_York",
        "current_date": datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc),
        "default_duration": 60,
    }
    values.update(overrides)
    return ProcessingOptions(**values)  # type: ignore[arg-type]


class TestNumberLines:
    def test_one_based_prefixes(self) -> None:
        assert number_lines(["a", "", "b"]) == "1: a\n2: \n3: b"

    def test_empty_input(self) -> None:
        assert number_lines([]) == ""


class TestSegmentationPrompt:
    def test_declares_output_shape(self) -> None:
        prompt = build_segmentation_prompt()

        assert '{"starts": [1, 15, 42]}' in prompt

    def test_contains_detail_label_rule(self) -> None:
        prompt = build_segmentation_prompt()

        assert '"When:", "Where:", "Location:", "Time:", "Date:", "Details:"' in prompt
        assert f"at most {MAX_SEGMENTS}" in prompt

    def test_contains_worked_examples(self) -> None:
        prompt = build_segmentation_prompt()

        assert '-> {"starts": [2, 3, 4]}' in prompt
        assert '-> {"starts": [1, 6]}' in prompt

    def test_is_stable(self) -> None:
        assert build_segmentation_prompt() == build_segmentation_prompt()


class TestExtractionPrompt:
    def test_embeds_local_current_date(self) -> None:
        prompt = build_extraction_prompt(_options())

        assert "CURRENT DATE: 2025-01-15T07:00:00-05:00 (Wednesday)" in prompt

    def test_embeds_timezone_and_offset(self) -> None:
        prompt = build_extraction_prompt(_options())

        assert "Target timezone: America/New_York (current UTC offset -05:00)" in prompt
        assert '"2025-06-12T16:00:00-05:00"' in prompt

    def test_offset_follows_daylight_saving(self) -> None:
        summer = _options(current_date=datetime(2025, 7, 1, 12, 0, tzinfo=timezone.utc))

        assert "current UTC offset -04:00" in build_extraction_prompt(summer)

    def test_utc_offset(self) -> None:
        prompt = build_extraction_prompt(_options(timezone="UTC"))

        assert "current UTC offset +00:00" in prompt

    def test_embeds_default_duration(self) -> None:
        prompt = build_extraction_prompt(_options(default_duration=45))

        assert "Default duration: 45 minutes" in prompt

    def test_lists_every_event_key(self) -> None:
        prompt = build_extraction_prompt(_options())

        assert ", ".join(f'"{key}"' for key in EVENT_KEYS) in prompt


def test_user_prompt_wraps_chunk() -> None:
    text = build_extraction_user_prompt("Lunch 1pm")

    assert text.endswith("\n\nLunch 1pm")

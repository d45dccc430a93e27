"""Shared fixtures for cal-extract tests."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Generator
from typing import Any

import pytest

from cal_extract.prompts import build_segmentation_prompt


@pytest.fixture()
def monkeypatch_env(monkeypatch: pytest.MonkeyPatch) -> dict[str, str]:
    """Set all required environment variables to valid defaults.

    Also patches ``load_dotenv`` so that a real ``.env`` file on disk does not
    override the test values.

    Returns the dict of variables so tests can inspect or override values.
    """
    monkeypatch.setattr("cal_extract.config.load_dotenv", lambda *_a, **_kw: None)
    env_vars = {"GEMINI_API_KEY": "test-gemini-key-12345"}
    for key, value in env_vars.items():
        monkeypatch.setenv(key, value)
    for key in (
        "MODEL",
        "LOG_LEVEL",
        "TIMEZONE",
        "DEFAULT_DURATION_MINUTES",
        "SEGMENTATION_MODE",
        "APP_ENV",
    ):
        monkeypatch.delenv(key, raising=False)
    return env_vars


@pytest.fixture()
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove all cal-extract-related environment variables.

    Patches ``load_dotenv`` so a real ``.env`` file cannot re-inject values
    that the test explicitly removed.
    """
    monkeypatch.setattr("cal_extract.config.load_dotenv", lambda *_a, **_kw: None)
    for key in (
        "GEMINI_API_KEY",
        "MODEL",
        "LOG_LEVEL",
        "TIMEZONE",
        "DEFAULT_DURATION_MINUTES",
        "SEGMENTATION_MODE",
        "APP_ENV",
    ):
        monkeypatch.delenv(key, raising=False)


@pytest.fixture(autouse=True)
def _reset_root_logger() -> Generator[None, None, None]:
    """Reset the root logger after each test to prevent handler leaks."""
    root = logging.getLogger()
    original_handlers = root.handlers[:]
    original_level = root.level
    yield
    root.handlers = original_handlers
    root.setLevel(original_level)


# ---------------------------------------------------------------------------
# Model gateway test double
# ---------------------------------------------------------------------------


def _event_json(**overrides: Any) -> str:
    payload: dict[str, Any] = {
        "title": "Team meeting",
        "description": "",
        "startDate": "2025-06-12T14:00:00-04:00",
        "endDate": "2025-06-12T15:00:00-04:00",
        "location": "Conference Room A",
        "timezone": "America/New_York",
        "summary": "Team meeting in Conference Room A.",
        "confidence": {
            "title": 0.9,
            "description": 0.5,
            "startDate": 0.9,
            "endDate": 0.8,
            "location": 0.9,
            "timezone": 0.9,
            "overall": 0.85,
        },
        "recurrence": None,
        "isAllDay": False,
    }
    payload.update(overrides)
    return json.dumps(payload)


class ScriptedGateway:
    """Deterministic ``ModelGateway`` that records every call.

    Segmentation calls are answered with *segmentation*; extraction calls
    are answered by ``extract(user_text)``.  Either may be an exception
    instance (raised on every call) instead of a response.
    """

    def __init__(
        self,
        segmentation: str | Exception = '{"starts": [1]}',
        extract: Callable[[str], str] | Exception | None = None,
    ) -> None:
        self.segmentation = segmentation
        self.extract = extract if extract is not None else (lambda _text: _event_json())
        self.calls: list[tuple[str, str, str]] = []

    @property
    def segmentation_calls(self) -> list[tuple[str, str, str]]:
        return [call for call in self.calls if call[0] == build_segmentation_prompt()]

    @property
    def extraction_calls(self) -> list[tuple[str, str, str]]:
        return [call for call in self.calls if call[0] != build_segmentation_prompt()]

    async def complete(self, system_prompt: str, user_text: str, model: str) -> str:
        self.calls.append((system_prompt, user_text, model))
        if system_prompt == build_segmentation_prompt():
            response: Any = self.segmentation
        else:
            response = self.extract
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(user_text)
        return response


@pytest.fixture()
def event_json() -> Callable[..., str]:
    """Factory for a valid per-event JSON response; keyword args override keys."""
    return _event_json


@pytest.fixture()
def make_gateway() -> type[ScriptedGateway]:
    """The :class:`ScriptedGateway` class, for building per-test doubles."""
    return ScriptedGateway

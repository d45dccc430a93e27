"""Configuration loading for cal-extract.

Reads settings from environment variables (with .env support via python-dotenv).
Only the model credential is required; everything else has a default.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from cal_extract.exceptions import ConfigurationError

DEFAULT_MODEL = "gemini-2.0-flash"

_SEGMENTATION_MODES = ("model", "rules")


@dataclass(frozen=True)
class Settings:
    """Application settings loaded from environment variables.

    Attributes:
        gemini_api_key: API key for Google Gemini.
        model: Model identifier used for both segmentation and extraction.
        log_level: Logging level (default ``"INFO"``).
        timezone: Fallback IANA timezone when a request names none.
        default_duration: Event length in minutes when the text gives
            no end time.
        segmentation_mode: ``"model"`` to segment with the LLM, ``"rules"``
            to use the deterministic rule-based segmenter.
        app_env: Runtime mode; ``"production"`` suppresses debug payloads.
    """

    gemini_api_key: str
    model: str = DEFAULT_MODEL
    log_level: str = "INFO"
    timezone: str = "UTC"
    default_duration: int = 60
    segmentation_mode: str = "model"
    app_env: str = "development"

    @property
    def is_production(self) -> bool:
        return self.app_env.lower() == "production"

    def __repr__(self) -> str:
        return (
            f"Settings(gemini_api_key='***', "
            f"model={self.model!r}, "
            f"log_level={self.log_level!r}, "
            f"timezone={self.timezone!r}, "
            f"default_duration={self.default_duration!r}, "
            f"segmentation_mode={self.segmentation_mode!r}, "
            f"app_env={self.app_env!r})"
        )


def load_settings() -> Settings:
    """Load and validate settings from environment variables.

    Calls :func:`dotenv.load_dotenv` so a ``.env`` file in the project root
    is picked up automatically.

    Returns:
        A validated :class:`Settings` instance.

    Raises:
        ConfigurationError: If ``GEMINI_API_KEY`` is missing or blank, or
            an optional value is malformed.
    """
    load_dotenv()

    api_key = os.environ.get("GEMINI_API_KEY", "")
    if not api_key.strip():
        raise ConfigurationError(
            "Missing required environment variables: GEMINI_API_KEY"
        )

    values: dict[str, object] = {"gemini_api_key": api_key}

    for env_var, field_name in (
        ("MODEL", "model"),
        ("LOG_LEVEL", "log_level"),
        ("TIMEZONE", "timezone"),
        ("APP_ENV", "app_env"),
    ):
        raw = os.environ.get(env_var, "").strip()
        if raw:
            values[field_name] = raw

    duration = os.environ.get("DEFAULT_DURATION_MINUTES", "").strip()
    if duration:
        try:
            minutes = int(duration)
        except ValueError as exc:
            raise ConfigurationError(
                f"DEFAULT_DURATION_MINUTES must be an integer, got {duration!r}"
            ) from exc
        if minutes <= 0:
            raise ConfigurationError(
                f"DEFAULT_DURATION_MINUTES must be positive, got {minutes}"
            )
        values["default_duration"] = minutes

    mode = os.environ.get("SEGMENTATION_MODE", "").strip().lower()
    if mode:
        if mode not in _SEGMENTATION_MODES:
            raise ConfigurationError(
                f"SEGMENTATION_MODE must be one of {', '.join(_SEGMENTATION_MODES)}, "
                f"got {mode!r}"
            )
        values["segmentation_mode"] = mode

    return Settings(**values)  # type: ignore[arg-type]

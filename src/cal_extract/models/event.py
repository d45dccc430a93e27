"""Pydantic models for extracted calendar events.

- :class:`ConfidenceScore` -- per-field certainty, every value in ``[0, 1]``.
- :class:`ExtractedEventData` -- one validated calendar event with
  timezone-aware datetimes and ``end_date > start_date``.

Both models use snake_case attributes and camelCase aliases so that they
serialise to the same wire shape the model emits and the API returns.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

CONFIDENCE_FIELDS: tuple[str, ...] = (
    "title",
    "description",
    "startDate",
    "endDate",
    "location",
    "timezone",
    "overall",
)

DEFAULT_CONFIDENCE = 0.5


class ConfidenceScore(BaseModel):
    """Model-reported certainty for each extracted field.

    ``overall`` is a holistic estimate and is not required to equal the
    mean of the other fields.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    title: float = Field(default=DEFAULT_CONFIDENCE, ge=0.0, le=1.0)
    description: float = Field(default=DEFAULT_CONFIDENCE, ge=0.0, le=1.0)
    start_date: float = Field(default=DEFAULT_CONFIDENCE, ge=0.0, le=1.0, alias="startDate")
    end_date: float = Field(default=DEFAULT_CONFIDENCE, ge=0.0, le=1.0, alias="endDate")
    location: float = Field(default=DEFAULT_CONFIDENCE, ge=0.0, le=1.0)
    timezone: float = Field(default=DEFAULT_CONFIDENCE, ge=0.0, le=1.0)
    overall: float = Field(default=DEFAULT_CONFIDENCE, ge=0.0, le=1.0)

    @classmethod
    def uniform(cls, value: float) -> ConfidenceScore:
        """Build a score with every field (including ``overall``) set to *value*."""
        return cls.model_validate({name: value for name in CONFIDENCE_FIELDS})


class ExtractedEventData(BaseModel):
    """A single calendar event after validation and normalisation.

    Attributes:
        title: Event title.
        description: Free-text description, possibly empty.
        start_date: Timezone-aware event start.
        end_date: Timezone-aware event end, strictly after *start_date*.
        location: Venue or address, possibly empty.
        timezone: IANA timezone identifier.
        summary: One-sentence summary (about 20 words at most).
        confidence: Per-field confidence scores.
        is_all_day: Whether the event spans whole days.
        recurrence: Recurrence pattern text, or ``None``.
        original_text: Verbatim source snippet, for display only.
    """

    model_config = ConfigDict(populate_by_name=True)

    title: str = ""
    description: str = ""
    start_date: datetime = Field(alias="startDate")
    end_date: datetime = Field(alias="endDate")
    location: str = ""
    timezone: str = "UTC"
    summary: str = ""
    confidence: ConfidenceScore = Field(default_factory=ConfidenceScore)
    is_all_day: bool = Field(default=False, alias="isAllDay")
    recurrence: str | None = None
    original_text: str | None = Field(default=None, alias="originalText")

    @field_validator("start_date", "end_date")
    @classmethod
    def _require_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None or value.utcoffset() is None:
            raise ValueError("datetime must be timezone-aware")
        return value

    @model_validator(mode="after")
    def _check_ordering(self) -> ExtractedEventData:
        if self.end_date <= self.start_date:
            raise ValueError("End date must be after start date")
        return self

    @property
    def duration_minutes(self) -> float:
        return (self.end_date - self.start_date).total_seconds() / 60

"""Per-request processing options."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from cal_extract.config import DEFAULT_MODEL


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ProcessingOptions:
    """Context supplied with every extraction request.

    Immutable for the duration of one extraction call.

    Attributes:
        timezone: IANA timezone the events should be expressed in.
        current_date: "Now", used to resolve relative dates.  Naive values
            are treated as UTC.
        default_duration: Minutes to add when the text gives no end time.
        model: Model identifier passed to the gateway.
        multi_event: ``False`` skips segmentation and extracts the whole
            text as one chunk.
    """

    timezone: str = "UTC"
    current_date: datetime = field(default_factory=_utc_now)
    default_duration: int = 60
    model: str = DEFAULT_MODEL
    multi_event: bool = True

    def __post_init__(self) -> None:
        if self.current_date.tzinfo is None:
            object.__setattr__(
                self, "current_date", self.current_date.replace(tzinfo=timezone.utc)
            )
        if self.default_duration <= 0:
            raise ValueError(
                f"default_duration must be positive, got {self.default_duration}"
            )

    @property
    def zone(self) -> ZoneInfo:
        """The :class:`~zoneinfo.ZoneInfo` for :attr:`timezone` (UTC if unknown)."""
        return resolve_zone(self.timezone)

    @property
    def local_now(self) -> datetime:
        """:attr:`current_date` converted to the target timezone."""
        return self.current_date.astimezone(self.zone)


def lookup_zone(name: str | None) -> ZoneInfo | None:
    """Return the zone for *name*, or ``None`` if it is not a known IANA zone.

    Names such as ``"America"`` point at a tzdata directory rather than a
    zone file and raise ``OSError`` from :class:`~zoneinfo.ZoneInfo`.
    """
    if not name:
        return None
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, OSError):
        return None


def resolve_zone(name: str | None) -> ZoneInfo:
    """Return the zone for *name*, falling back to UTC for unknown names."""
    return lookup_zone(name) or ZoneInfo("UTC")

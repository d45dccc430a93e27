"""Data models for cal-extract."""

from __future__ import annotations

from cal_extract.models.event import (
    CONFIDENCE_FIELDS,
    ConfidenceScore,
    ExtractedEventData,
)
from cal_extract.models.options import (
    ProcessingOptions,
    lookup_zone,
    resolve_zone,
)
from cal_extract.models.segment import SegmentChunk

__all__ = [
    "CONFIDENCE_FIELDS",
    "ConfidenceScore",
    "ExtractedEventData",
    "ProcessingOptions",
    "SegmentChunk",
    "lookup_zone",
    "resolve_zone",
]

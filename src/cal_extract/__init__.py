"""cal-extract: natural-language text to calendar events.

Segments free-form text (emails, notes, agendas) into per-event chunks
and extracts a validated, confidence-scored event from each one using
Google Gemini.
"""

from __future__ import annotations

from cal_extract.api import (
    ApiResponse,
    describe_endpoint,
    handle_parse_event,
    handle_parse_events,
)
from cal_extract.config import Settings, load_settings
from cal_extract.cost import estimate_cost
from cal_extract.exceptions import (
    ConfigurationError,
    ExtractionError,
    InputError,
    MalformedResponseError,
    ModelError,
    NoEventsError,
    SegmentationError,
    ValidationError,
)
from cal_extract.extractor import EventExtractor
from cal_extract.gateway import ModelGateway, RetryingGateway, build_gateway
from cal_extract.models import (
    ConfidenceScore,
    ExtractedEventData,
    ProcessingOptions,
    SegmentChunk,
)
from cal_extract.pipeline import (
    ExtractionRun,
    extract_event_details,
    extract_events,
    run_extraction,
)
from cal_extract.sanitize import sanitize
from cal_extract.segmentation import segment, segment_with_rules

__version__ = "0.1.0"

__all__ = [
    "ApiResponse",
    "ConfidenceScore",
    "ConfigurationError",
    "EventExtractor",
    "ExtractedEventData",
    "ExtractionError",
    "ExtractionRun",
    "InputError",
    "MalformedResponseError",
    "ModelError",
    "ModelGateway",
    "NoEventsError",
    "ProcessingOptions",
    "RetryingGateway",
    "SegmentChunk",
    "SegmentationError",
    "Settings",
    "ValidationError",
    "build_gateway",
    "describe_endpoint",
    "estimate_cost",
    "extract_event_details",
    "extract_events",
    "handle_parse_event",
    "handle_parse_events",
    "load_settings",
    "run_extraction",
    "sanitize",
    "segment",
    "segment_with_rules",
]

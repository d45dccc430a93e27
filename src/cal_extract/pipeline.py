"""Extraction orchestrator for the text-to-calendar workflow.

Wires the components together: sanitisation, segmentation, concurrent
per-chunk extraction and aggregation.  Entry points:

- :func:`run_extraction` -- the full multi-event run, returning an
  :class:`ExtractionRun` with every intermediate result.
- :func:`extract_events` -- the same, returning only the event list.
- :func:`extract_event_details` -- single-event path that skips
  segmentation and treats the whole input as one chunk.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass, field

from cal_extract.exceptions import (
    InputError,
    ModelError,
    NoEventsError,
)
from cal_extract.extractor import ChunkOutcome, EventExtractor
from cal_extract.gateway import ModelGateway
from cal_extract.models.event import ExtractedEventData
from cal_extract.models.options import ProcessingOptions
from cal_extract.models.segment import SegmentChunk
from cal_extract.sanitize import sanitize
from cal_extract.segmentation import (
    leading_context,
    segment,
    segment_with_rules,
    split_lines,
)

logger = logging.getLogger(__name__)

MAX_EVENTS = 10


# ---------------------------------------------------------------------------
# Result dataclass
# ---------------------------------------------------------------------------


@dataclass
class ExtractionRun:
    """Aggregated result of one multi-event extraction call.

    Attributes:
        text: The sanitised input text.
        chunks: Chunks produced by segmentation, in line order.
        outcomes: One :class:`ChunkOutcome` per chunk, in chunk order.
        events: Successfully extracted events, in chunk order, at most
            :data:`MAX_EVENTS`.
        duration_seconds: Wall-clock time for the whole call.
    """

    text: str
    chunks: list[SegmentChunk] = field(default_factory=list)
    outcomes: list[ChunkOutcome] = field(default_factory=list)
    events: list[ExtractedEventData] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def starts(self) -> list[int]:
        return [chunk.start_line for chunk in self.chunks]

    @property
    def dropped(self) -> list[ChunkOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.succeeded]

    def debug_report(self) -> str:
        """Render segmentation and raw per-chunk responses for debugging."""
        lines = [f"segmentation: starts={json.dumps(self.starts)}"]
        for outcome in self.outcomes:
            chunk = outcome.chunk
            status = "ok" if outcome.succeeded else f"dropped ({outcome.error})"
            lines.append(
                f"chunk {chunk.id} [lines {chunk.start_line}-{chunk.end_line}] {status}"
            )
            if outcome.raw_response:
                lines.append(outcome.raw_response.strip())
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


def _clean_input(text: str) -> str:
    cleaned = sanitize(text)
    if not cleaned:
        raise InputError("Text input is required")
    return cleaned


def _whole_text_chunk(cleaned: str) -> SegmentChunk:
    return SegmentChunk(id="0", text=cleaned, start_line=1, end_line=len(split_lines(cleaned)))


async def run_extraction(
    text: str,
    options: ProcessingOptions,
    gateway: ModelGateway,
    *,
    segmentation: str = "model",
) -> ExtractionRun:
    """Run the multi-event pipeline and keep every intermediate result.

    Stages:

    1. **Sanitise** -- strip unsafe markup; blank input is rejected before
       any model call.
    2. **Segment** -- one model call (or the rule-based segmenter when
       *segmentation* is ``"rules"``) splits the text into chunks.  When
       ``options.multi_event`` is false the whole text is one chunk and no
       segmentation call is made.
    3. **Extract** -- every chunk is extracted concurrently.  A chunk that
       fails for any reason (bad JSON, invalid event, exhausted retries or
       an unexpected error) is dropped without affecting its siblings.
    4. **Aggregate** -- surviving events are kept in chunk order and
       truncated to :data:`MAX_EVENTS`.

    Args:
        text: Raw input text.
        options: Processing options for this request.
        gateway: Model gateway used for every call.
        segmentation: ``"model"`` or ``"rules"``.

    Returns:
        An :class:`ExtractionRun` with at least one event.

    Raises:
        InputError: If the text is blank after sanitisation.
        SegmentationError: If the segmentation response is malformed.
        ModelError: If segmentation fails at the model level, or if every
            chunk failed because of model errors.
        NoEventsError: If every chunk was dropped.
    """
    start_time = time.monotonic()
    cleaned = _clean_input(text)
    run = ExtractionRun(text=cleaned)

    # ------------------------------------------------------------------
    # Stage 1: Segment
    # ------------------------------------------------------------------
    if not options.multi_event:
        run.chunks = [_whole_text_chunk(cleaned)]
    elif segmentation == "rules":
        run.chunks = segment_with_rules(cleaned)
    else:
        run.chunks = await segment(cleaned, options, gateway)
    context = leading_context(split_lines(cleaned), run.chunks)

    logger.info("Stage 1 complete: %d chunk(s) at lines %s", len(run.chunks), run.starts)

    # ------------------------------------------------------------------
    # Stage 2: Extract (fan-out / fan-in)
    # ------------------------------------------------------------------
    extractor = EventExtractor(gateway)
    results = await asyncio.gather(
        *(extractor.extract_chunk(chunk, options, context=context) for chunk in run.chunks),
        return_exceptions=True,
    )

    model_errors: list[ModelError] = []
    for chunk, result in zip(run.chunks, results):
        if isinstance(result, ModelError):
            logger.warning("Dropping chunk %s: model call failed: %s", chunk.id, result)
            model_errors.append(result)
            run.outcomes.append(ChunkOutcome(chunk=chunk, error=str(result)))
        elif isinstance(result, Exception):
            logger.error(
                "Dropping chunk %s: unexpected %s: %s",
                chunk.id,
                type(result).__name__,
                result,
                exc_info=result,
            )
            run.outcomes.append(ChunkOutcome(chunk=chunk, error=str(result)))
        elif isinstance(result, BaseException):
            raise result
        else:
            run.outcomes.append(result)

    # ------------------------------------------------------------------
    # Stage 3: Aggregate
    # ------------------------------------------------------------------
    events = [outcome.event for outcome in run.outcomes if outcome.event is not None]
    run.duration_seconds = time.monotonic() - start_time

    if not events:
        if model_errors and len(model_errors) == len(run.chunks):
            raise model_errors[-1]
        raise NoEventsError(
            f"No events could be extracted from {len(run.chunks)} chunk(s)"
        )

    if len(events) > MAX_EVENTS:
        logger.info("Truncating %d events to %d", len(events), MAX_EVENTS)
    run.events = events[:MAX_EVENTS]

    logger.info(
        "Extraction complete in %.2fs: %d event(s), %d chunk(s) dropped",
        run.duration_seconds,
        len(run.events),
        len(run.dropped),
    )
    return run


async def extract_events(
    text: str,
    options: ProcessingOptions,
    gateway: ModelGateway,
    *,
    segmentation: str = "model",
) -> list[ExtractedEventData]:
    """Extract every event described in *text*.

    See :func:`run_extraction` for stages and errors.

    Returns:
        A non-empty list of events in input order, at most
        :data:`MAX_EVENTS` long.
    """
    run = await run_extraction(text, options, gateway, segmentation=segmentation)
    return run.events


async def extract_event_details(
    text: str,
    options: ProcessingOptions,
    gateway: ModelGateway,
) -> ExtractedEventData:
    """Extract a single event from the whole of *text*.

    Skips segmentation.  Unlike the multi-event path, a malformed or
    invalid response is raised rather than dropped, because there is no
    other chunk to fall back on.

    Raises:
        InputError: If the text is blank after sanitisation.
        MalformedResponseError: If the response cannot be decoded or fails
            validation.
        ModelError: If the model call fails.
    """
    cleaned = _clean_input(text)
    chunk = _whole_text_chunk(cleaned)

    extractor = EventExtractor(gateway)
    raw = await extractor.request(chunk, options)
    event = extractor.build_event(raw, chunk, options)
    logger.info("Extracted single event '%s'", event.title)
    return event

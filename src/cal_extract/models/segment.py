"""Segment data models.

These dataclasses describe the output of the segmentation engine.  Like
the other request-scoped values they are plain frozen dataclasses: they
never cross the model boundary, so they need no pydantic validation.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class SegmentChunk:
    """A contiguous span of input lines that describes one candidate event.

    Attributes:
        id: Positional index of the chunk within one segmentation run
            (``"0"``, ``"1"``, ...).
        text: The original lines of the span, joined with ``\\n``.
        start_line: 1-based line number of the first line (inclusive).
        end_line: 1-based line number of the last line (inclusive).
    """

    id: str
    text: str
    start_line: int
    end_line: int

    @property
    def line_count(self) -> int:
        return self.end_line - self.start_line + 1

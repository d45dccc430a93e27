"""Custom exceptions for the cal-extract pipeline.

Exception hierarchy::

    ConfigurationError        (missing model credential)
    InputError                (blank or non-string input text)
    ModelError                (model backend / transport failure)
    MalformedResponseError    (model output could not be parsed)
    +-- SegmentationError     (bad ``{"starts": [...]}`` payload)
    +-- ValidationError       (per-event payload failed validation)
    ExtractionError           (unrecoverable extraction failure)
    +-- NoEventsError         (every chunk was dropped)
"""

from __future__ import annotations


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""


class InputError(ValueError):
    """Raised when the input text is empty after sanitization."""


class ModelError(Exception):
    """Raised when a model invocation fails.

    Attributes:
        status_code: HTTP-style status code reported by the backend, or
            ``None`` if the failure did not carry one.
        empty_response: ``True`` when the backend answered without any
            text content.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        empty_response: bool = False,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.empty_response = empty_response

    @property
    def retryable(self) -> bool:
        """Whether the failure is transient (rate limit or server fault)."""
        if self.empty_response:
            return True
        if self.status_code is None:
            return False
        return self.status_code == 429 or self.status_code >= 500


class MalformedResponseError(Exception):
    """Raised when the model response cannot be parsed or validated.

    Attributes:
        raw_response: The raw model output that failed to parse.
    """

    def __init__(self, message: str, raw_response: str = "") -> None:
        super().__init__(message)
        self.raw_response = raw_response


class SegmentationError(MalformedResponseError):
    """Raised when the segmentation response is not ``{"starts": [...]}``.

    Fatal to the whole extraction call.
    """


class ValidationError(MalformedResponseError):
    """Raised when a per-event payload is semantically invalid.

    The event extractor recovers from this locally by dropping the chunk.
    """


class ExtractionError(Exception):
    """Raised for unrecoverable extraction failures."""


class NoEventsError(ExtractionError):
    """Raised when every chunk of the input failed extraction."""

    def __init__(self, message: str = "No events could be extracted") -> None:
        super().__init__(message)

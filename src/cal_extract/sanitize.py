"""Best-effort input sanitizer.

Strips ``<script>``/``<iframe>`` elements and neutralises executable URI
schemes before user text is embedded in a prompt or echoed back.  This is
not a full HTML sanitizer: attributes, event handlers and other tags are
left untouched.
"""

from __future__ import annotations

import re

_BLOCK_PATTERNS = (
    re.compile(r"<script[^>]*>.*?</script\s*>", re.IGNORECASE | re.DOTALL),
    re.compile(r"<iframe[^>]*>.*?</iframe\s*>", re.IGNORECASE | re.DOTALL),
)

_SCHEME_PATTERN = re.compile(r"(?:javascript|data|vbscript):", re.IGNORECASE)


def sanitize(text: object) -> str:
    """Return *text* with unsafe markup and URI schemes removed.

    Never raises.  Non-string input yields an empty string.

    Args:
        text: Raw user input.

    Returns:
        The cleaned, whitespace-trimmed text (possibly empty).
    """
    if not isinstance(text, str):
        return ""

    cleaned = text
    for pattern in _BLOCK_PATTERNS:
        cleaned = pattern.sub("", cleaned)
    cleaned = _SCHEME_PATTERN.sub("", cleaned)
    return cleaned.strip()

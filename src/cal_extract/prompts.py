"""Prompt builders for segmentation and per-event extraction.

The rule lists below are business policy, not incidental prompt text.
They are versioned so that benchmark reports can record which policy a
run was scored against; any change to a rule must bump the matching
version string.
"""

from __future__ import annotations

from cal_extract.models.options import ProcessingOptions

SEGMENTATION_POLICY_VERSION = "seg-2025.07"
EXTRACTION_POLICY_VERSION = "ext-2025.07"

MAX_SEGMENTS = 10

DETAIL_LABELS: tuple[str, ...] = ("When", "Where", "Location", "Time", "Date", "Details")
HEADER_KEYWORDS: tuple[str, ...] = (
    "schedule",
    "agenda",
    "itinerary",
    "timeline",
    "offsite",
    "workshop",
    "workshops",
)
EVENT_KEYWORDS: tuple[str, ...] = (
    "party",
    "birthday",
    "graduation",
    "conference",
    "meeting",
    "board",
    "wedding",
    "concert",
    "picnic",
)

EVENT_KEYS: tuple[str, ...] = (
    "title",
    "description",
    "startDate",
    "endDate",
    "location",
    "timezone",
    "summary",
    "confidence",
    "recurrence",
    "isAllDay",
)

_DETAIL_LIST = ", ".join(f'"{label}:"' for label in DETAIL_LABELS)

SEGMENTATION_RULES: tuple[str, ...] = (
    "Every line in the input must be assigned to exactly one event chunk. "
    "No text may be left out or unassigned.",
    "Blank lines (only whitespace) are NOT events, but may separate events.",
    "Events can only be split at a line break. If an event spans multiple "
    "lines, all of those lines belong to its chunk.",
    "A line starts a new event only if it introduces a new date, time, or "
    "clearly different occasion.",
    f"Lines that start with {_DETAIL_LIST} are DETAIL lines. They MUST NOT "
    "appear in \"starts\"; they belong to the event above them. If one would "
    "be chosen, use the closest previous non-detail line instead.",
    "Bullet or numbered schedules: each bullet/number is a new event if and "
    "only if it contains its own date or time token (digits with am/pm, "
    "hh:mm, yyyy-mm-dd, a bare hour, and so on).",
    "Headers containing words like \"schedule\", \"agenda\", \"itinerary\", "
    "\"timeline\", \"offsite\" or \"workshops\" with NO digits are never events. "
    "When such a header is directly followed by a bulleted or numbered list, "
    "treat it as context only, even if it contains a date, and start an "
    "event at every bullet that carries a time or date.",
    "Always choose the earliest eligible line for an event. If both a "
    "narrative headline and a later detail line describe the same event, "
    "pick the headline.",
    "A capitalised line containing an event keyword (party, birthday, "
    "graduation, conference, meeting, board, wedding, concert, picnic) "
    "starts a new event even without an explicit time.",
    "Recurring phrases (\"every\", \"each\", \"daily\", \"weekly\", or several "
    "weekdays such as \"Mon/Wed/Fri\") describe ONE event. Never split a "
    "recurrence into several starts.",
    "Return at least one start whenever the text references a date, time, "
    "or event keyword. Return an empty list only for non-event text.",
    "Each start is the 1-based line number of the FIRST line of an event.",
    f"Starts must be strictly ascending integers, at most {MAX_SEGMENTS}.",
)

SEGMENTATION_EXAMPLES = """\
Example - header with bullet times (total lines = 5):
1: Saturday schedule:
2: • Soccer practice 8am
3: • Grocery run 10am
4: • Movie night 8pm
5:
-> {"starts": [2, 3, 4]}

Example - event with detail lines (total lines = 3):
1: Alex's birthday dinner!
2: When: Sat July 20, 7pm
3: Where: 42 Main St
-> {"starts": [1]}

Example - agenda header with a date (total lines = 4):
1: Agenda 14 Feb:
2: - Breakfast 9
3: - Stand-up 10
4: - Release party 20:00
-> {"starts": [2, 3, 4]}

Example - narrative header and details (total lines = 7):
1: Team meeting tomorrow at 4pm at Nori House
2:
3:
4: Hey everyone!
5:
6: FOOD BOARD PARTY - Part 2!
7: When: Saturday, July 19, 2025, at 5:00 PM
-> {"starts": [1, 6]}

Example - recurrence (total lines = 2):
1: Yoga every Mon/Wed/Fri 6:30am
2: Bring your own mat
-> {"starts": [1]}"""

EXTRACTION_RULES: tuple[str, ...] = (
    "Prefer explicit \"When\", \"Date\" or \"Time\" lines if present; otherwise "
    "infer from context.",
    "Resolve relative words (\"today\", \"tomorrow\", \"Friday\", \"this Saturday\") "
    "against the CURRENT DATE. A bare weekday means its next occurrence.",
    "\"next <weekday>\" skips the immediately upcoming occurrence and uses the "
    "one in the following week.",
    "For an explicit time range \"A-B\", startDate is A and endDate is B.",
    "For a single time with no range, use the default duration unless one of "
    "the duration overrides below applies.",
    "Emit every timestamp in the target timezone WITH its UTC offset (for "
    "example 2025-06-12T16:00:00-04:00), never normalised to UTC, unless the "
    "text explicitly names a different zone.",
    "Title casing: capitalise only the first word and proper nouns; generic "
    "nouns (meeting, workshop, birthday) stay lowercase.",
    "Keep any token that is all-uppercase in the source (acronyms, airport "
    "codes such as NYC or YYZ) exactly as written.",
    "Keep punctuation that separates title segments, such as the colon in "
    "\"Webinar: AI Trends\", and keep the word after the colon capitalised.",
    "Always capitalise the very first character of the title, even if the "
    "source is all lowercase.",
    "Duration overrides, most specific first: a flight with only a departure "
    "time lasts 2 hours; a concert, show or performance without an end time "
    "lasts 2 hours; a deadline, rent, pay or release item without a time runs "
    "17:00-18:00 local; \"end of day\" or \"EOD\" without a time runs "
    "17:00-18:00 local; a webinar or online/Zoom/Teams/Google Meet event "
    "without an end time lasts 1 hour; \"Black Friday\" without an end time "
    "lasts 3 hours.",
    "Monthly or recurring single-date phrases (\"first of every month\", "
    "\"monthly\", \"last day of each month\") always run 00:00-01:00 local on "
    "the resolved date and override every duration default above.",
    "An explicit multi-day range (a dash or \"to\" between two dated or timed "
    "tokens, or \"starts X ends Y\") uses the first token as startDate and the "
    "last as endDate exactly as written, with no added lead time.",
    "Generic \"starts ... ends ...\" phrasing with NO numeric date is future "
    "planning language: choose the first such multi-day block that begins at "
    "least 28 days after the CURRENT DATE.",
    "Ordinal weekdays (\"2nd Tuesday\", \"4th Friday\") resolve to the next "
    "calendar occurrence after the CURRENT DATE; if several ordinals are "
    "listed, pick the earliest upcoming one.",
    "Recurring phrases starting with \"every\", \"each\", \"daily\" or "
    "\"weekly\", or listing several weekdays (\"Mon/Wed/Fri 6:30\"), yield "
    "exactly one event: the first upcoming occurrence. Put the pattern in "
    "\"recurrence\".",
    "Treat \"online\", \"Zoom\", \"Google Meet\", \"Teams\", airport codes and "
    "\"Home\"/\"Office\"/\"HQ\" after \"at\"/\"in\" as explicit locations. Combine "
    "venue and address; drop labels such as \"Location:\".",
    "Never invent facts that are not in the text. Missing fields take the "
    "defaults: empty strings, recurrence null, isAllDay false.",
)


def _numbered(rules: tuple[str, ...]) -> str:
    return "\n".join(f"{index}. {rule}" for index, rule in enumerate(rules, start=1))


def number_lines(lines: list[str]) -> str:
    """Prefix each line with its 1-based index (``"<n>: <line>"``)."""
    return "\n".join(f"{index}: {line}" for index, line in enumerate(lines, start=1))


def build_segmentation_prompt() -> str:
    """Build the system prompt for the segmentation call.

    The user content for this call is the output of :func:`number_lines`.
    """
    return f"""\
You will be given arbitrary text, one numbered line per row, that may
describe zero or more calendar events. Find the line where each event starts.

Return valid JSON ONLY in this format (no extra keys):
{{"starts": [1, 15, 42]}}

Segmentation rules:
{_numbered(SEGMENTATION_RULES)}

{SEGMENTATION_EXAMPLES}

Return nothing else: no comments, no markdown, no trailing text."""


def build_extraction_prompt(options: ProcessingOptions) -> str:
    """Build the system prompt for extracting one event from one chunk.

    Embeds the current date, the target timezone with its current UTC
    offset, and the default duration so the model can resolve relative
    references.

    Args:
        options: The request's processing options.

    Returns:
        The complete system prompt string.
    """
    local_now = options.local_now
    offset = local_now.strftime("%z")
    offset = f"{offset[:3]}:{offset[3:]}" if offset else "+00:00"
    keys = ", ".join(f'"{key}"' for key in EVENT_KEYS)

    return f"""\
You are an expert calendar event extraction AI. The text you receive
describes exactly ONE event. Extract it as structured JSON.

## Context

- CURRENT DATE: {local_now.isoformat()} ({local_now.strftime("%A")})
- Target timezone: {options.timezone} (current UTC offset {offset})
- Default duration: {options.default_duration} minutes

## Output format

Return ONE minified JSON object with exactly these keys, in this order:
{keys}

- "title": concise title (about 5 words)
- "description": extra details from the text, or ""
- "startDate" / "endDate": ISO 8601 with offset, e.g. "2025-06-12T16:00:00{offset}"
- "location": venue and address, or ""
- "timezone": IANA timezone identifier (default "{options.timezone}")
- "summary": one sentence of at most 20 words
- "confidence": an object with numbers from 0.0 to 1.0 for "title",
  "description", "startDate", "endDate", "location", "timezone" and
  "overall" ("overall" is your holistic certainty). Be conservative with
  ambiguous information.
- "recurrence": the recurrence pattern text, or null
- "isAllDay": true or false

## Rules

{_numbered(EXTRACTION_RULES)}

Do NOT output markdown fences, comments, or extra keys."""


def build_extraction_user_prompt(chunk_text: str) -> str:
    """Wrap one chunk's text as the user content of an extraction call."""
    return f"Extract the calendar event from the following text:\n\n{chunk_text}"

"""Chat export parser.

Turns the text of a chat export into structured messages. Each line is
classified (system notice or candidate), matched against an ordered list of
line formats, and its date/time and content are normalized.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import NamedTuple

logger = logging.getLogger(__name__)


# Date fragments: D/M/YY, D/M/YYYY or YYYY/M/D
DATE = r'(?P<date>\d{4}/\d{1,2}/\d{1,2}|\d{1,2}/\d{1,2}/\d{2,4})'
# Time fragments: H:MM or H:MM:SS (24h)
TIME = r'(?P<time>\d{1,2}:\d{2}(?::\d{2})?)'
# Sender runs up to the first colon and starts with a visible character,
# content is everything after it
SENDER_AND_CONTENT = r'\s*(?P<sender>[^:\s][^:]*):\s*(?P<content>\S.*)$'
DASHES = '-–—'


class LineFormat(NamedTuple):
    """A named line layout. Every pattern captures date, time, sender and content."""
    name: str
    pattern: re.Pattern


# Tried in order, first match wins. Bracketed layouts go first so a looser
# dash layout never claims a fragment of a bracketed line.
LINE_FORMATS = [
    # [DD/MM/YY, HH:MM:SS] Name: Message
    LineFormat('bracketed_comma', re.compile(rf'^\[{DATE},\s*{TIME}\]{SENDER_AND_CONTENT}')),
    # [DD/MM/YY HH:MM:SS] Name: Message
    LineFormat('bracketed', re.compile(rf'^\[{DATE}\s+{TIME}\]{SENDER_AND_CONTENT}')),
    # DD/MM/YY, HH:MM - Name: Message
    LineFormat('dash_comma', re.compile(rf'^{DATE},\s*{TIME}\s*[{DASHES}]{SENDER_AND_CONTENT}')),
    # DD/MM/YY HH:MM - Name: Message
    LineFormat('dash', re.compile(rf'^{DATE}\s+{TIME}\s*[{DASHES}]{SENDER_AND_CONTENT}')),
]

# Timestamp header of any supported layout, used to reach the body of a notice
NOTICE_HEADER = re.compile(
    r'^(?:\[\d{1,4}/\d{1,2}/\d{1,4},?\s*\d{1,2}:\d{2}(?::\d{2})?\]'
    rf'|\d{{1,4}}/\d{{1,2}}/\d{{1,4}},?\s*\d{{1,2}}:\d{{2}}(?::\d{{2}})?\s*[{DASHES}])\s*'
)

# Administrative notices, matched case-insensitively at the start of the line
# body. "[^:]+?" stands for the acting participant and cannot cross the colon
# that separates a sender from a real message.
SYSTEM_NOTICE_PATTERNS = [
    re.compile(p, re.IGNORECASE) for p in (
        r'messages and calls are end-to-end encrypted',
        r'messages to this (?:group|chat) are now secured with end-to-end encryption',
        r'your security code with .+ changed',
        r'[^:]+? created (?:the )?group',
        r'[^:]+? (?:added|removed) ',
        r'[^:]+? left$',
        r"[^:]+? joined using this group's invite link",
        r'you were (?:added|removed)',
        r"you're now an admin",
        r"[^:]+? changed (?:the subject|this group's icon|the group description|this group's settings)",
        r"[^:]+? deleted this group's icon",
        r'[^:]+? changed their phone number',
        r'[^:]+? changed to \+?\d',
    )
]

# Emoji blocks: pictographs, symbols, dingbats, supplemental symbols
EMOJI_PATTERN = re.compile(
    "["
    "\U0001F300-\U0001F6FF"  # symbols & pictographs, emoticons, transport
    "\U0001F900-\U0001F9FF"  # supplemental symbols
    "\U00002600-\U000026FF"  # misc symbols
    "\U00002700-\U000027BF"  # dingbats
    "]"
)

# Fitzpatrick modifiers sit inside the pictograph block but are not emoji on their own
SKIN_TONE_MODIFIERS = frozenset(chr(c) for c in range(0x1F3FB, 0x1F400))

NON_WORD_PATTERN = re.compile(r'[^\w\s]')

# Two-digit years are read as 20YY
CENTURY_PREFIX = '20'

# Invisible marks some exporters put at the start of lines
INVISIBLE_PREFIXES = '\ufeff\u200e\u200f'


def tokenize(content: str) -> list[str]:
    """Lowercase words of a message with punctuation removed."""
    return NON_WORD_PATTERN.sub(' ', content.lower()).split()


def has_emoji(content: str) -> bool:
    """Check if content contains at least one emoji."""
    return EMOJI_PATTERN.search(content) is not None


def extract_emojis(content: str) -> list[str]:
    """Extract every emoji character from content, in order."""
    return [e for e in EMOJI_PATTERN.findall(content) if e not in SKIN_TONE_MODIFIERS]


@dataclass
class ParsedMessage:
    """A single chat message."""
    timestamp: datetime
    sender: str
    content: str

    @property
    def words(self) -> list[str]:
        """Tokens of the content, derived on every access."""
        return tokenize(self.content)

    @property
    def has_emoji(self) -> bool:
        return has_emoji(self.content)

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp.isoformat(),
            "sender": self.sender,
            "content": self.content,
            "words": self.words,
            "hasEmoji": self.has_emoji,
        }


@dataclass
class ParseDiagnostics:
    """Counts of what the parser did with each input line."""
    total_lines: int = 0
    blank_lines: int = 0
    system_lines: int = 0
    unmatched_lines: int = 0
    invalid_timestamps: int = 0
    dropped_messages: int = 0
    format_counts: dict[str, int] = field(default_factory=dict)

    @property
    def skipped_lines(self) -> int:
        """Lines that did not produce a message."""
        return self.blank_lines + self.system_lines + self.unmatched_lines + self.dropped_messages

    def to_dict(self) -> dict:
        return {
            "totalLines": self.total_lines,
            "blankLines": self.blank_lines,
            "systemLines": self.system_lines,
            "unmatchedLines": self.unmatched_lines,
            "invalidTimestamps": self.invalid_timestamps,
            "droppedMessages": self.dropped_messages,
            "formatCounts": dict(self.format_counts),
        }


@dataclass
class ParsedChat:
    """A parsed chat export."""
    messages: list[ParsedMessage]
    participants: list[str]
    start_date: datetime
    end_date: datetime
    diagnostics: ParseDiagnostics = field(default_factory=ParseDiagnostics)

    @property
    def is_empty(self) -> bool:
        """True when no line could be parsed into a message."""
        return not self.messages

    @property
    def messages_by_sender(self) -> dict[str, list[ParsedMessage]]:
        """Group messages by sender."""
        by_sender: dict[str, list[ParsedMessage]] = {}
        for msg in self.messages:
            if msg.sender not in by_sender:
                by_sender[msg.sender] = []
            by_sender[msg.sender].append(msg)
        return by_sender

    def to_dict(self, include_messages: bool = False) -> dict:
        data = {
            "messageCount": len(self.messages),
            "participants": list(self.participants),
            "startDate": self.start_date.isoformat(),
            "endDate": self.end_date.isoformat(),
            "diagnostics": self.diagnostics.to_dict(),
        }
        if include_messages:
            data["messages"] = [m.to_dict() for m in self.messages]
        return data


class LineKind(Enum):
    """How the classifier treats a raw line. BLANK and SYSTEM are both skipped."""
    BLANK = "blank"
    SYSTEM = "system"
    CANDIDATE = "candidate"

    @property
    def is_skipped(self) -> bool:
        return self is not LineKind.CANDIDATE


class LineMatch(NamedTuple):
    """Raw fragments captured from a message line."""
    date_part: str
    time_part: str
    sender: str
    content: str
    format_name: str


def classify_line(line: str) -> LineKind:
    """Decide whether a raw line is a system notice or a candidate message."""
    line = line.strip().lstrip(INVISIBLE_PREFIXES)
    if not line:
        return LineKind.BLANK

    body = NOTICE_HEADER.sub('', line, count=1).lstrip(INVISIBLE_PREFIXES).strip()
    for pattern in SYSTEM_NOTICE_PATTERNS:
        if pattern.match(body):
            return LineKind.SYSTEM
    return LineKind.CANDIDATE


def match_line(line: str) -> LineMatch | None:
    """Match a line against LINE_FORMATS in priority order."""
    line = line.strip().lstrip(INVISIBLE_PREFIXES)
    for line_format in LINE_FORMATS:
        match = line_format.pattern.match(line)
        if not match:
            continue

        content = match.group('content').rstrip()
        # Handle special invisible character at start
        content = content.lstrip(INVISIBLE_PREFIXES)
        # Nothing but invisible marks and spaces
        if not content.strip(INVISIBLE_PREFIXES + ' \t'):
            return None
        return LineMatch(
            date_part=match.group('date'),
            time_part=match.group('time'),
            sender=match.group('sender').strip(),
            content=content,
            format_name=line_format.name,
        )
    return None


def parse_timestamp(date_str: str, time_str: str) -> datetime:
    """Parse date and time fragments into a datetime.

    The date is DD/MM/YY, DD/MM/YYYY, or YYYY/MM/DD when the first component
    has four digits. Two-digit years are widened with CENTURY_PREFIX, so
    pre-2000 exports are misdated. Missing seconds default to zero.

    Raises:
        ValueError: If either fragment is malformed or names an impossible
            calendar date or time of day.
    """
    date_parts = date_str.split('/')
    if len(date_parts) != 3:
        raise ValueError(f"Unrecognized date: {date_str!r}")

    if len(date_parts[0]) == 4:
        year, month, day = date_parts
    else:
        day, month, year = date_parts

    # Handle 2-digit years
    if len(year) == 2:
        year = CENTURY_PREFIX + year
    elif len(year) != 4:
        raise ValueError(f"Unrecognized year in date: {date_str!r}")

    # Handle time with or without seconds
    time_parts = time_str.split(':')
    if len(time_parts) == 2:
        time_parts.append('00')
    if len(time_parts) != 3:
        raise ValueError(f"Unrecognized time: {time_str!r}")
    hour, minute, second = (int(p) for p in time_parts)

    return datetime(int(year), int(month), int(day), hour, minute, second)


def parse_chat_text(
    text: str,
    now: datetime | None = None,
    drop_invalid_timestamps: bool = False
) -> ParsedChat:
    """Parse the full text of a chat export.

    Never raises for malformed input: blank lines, system notices and lines
    matching no format are skipped and counted in ``diagnostics``. A message
    whose date/time cannot be read is stamped with ``now`` (the current time
    by default), or dropped when ``drop_invalid_timestamps`` is set.

    Parsed timestamps are naive local times. An aware ``now`` is converted to
    local time and made naive so both kinds can be compared.
    """
    now = now or datetime.now()
    if now.tzinfo is not None:
        now = now.astimezone().replace(tzinfo=None)

    text = text.replace('\r\n', '\n').replace('\r', '\n')
    lines = text.split('\n')
    # A final newline ends the last line rather than starting an empty one
    if lines[-1] == '':
        lines.pop()

    diagnostics = ParseDiagnostics(total_lines=len(lines))
    messages: list[ParsedMessage] = []
    participants: list[str] = []
    seen_participants: set[str] = set()
    earliest: datetime | None = None
    latest: datetime | None = None

    for line_number, line in enumerate(lines, 1):
        kind = classify_line(line)
        if kind is LineKind.BLANK:
            diagnostics.blank_lines += 1
            continue
        if kind is LineKind.SYSTEM:
            diagnostics.system_lines += 1
            logger.debug("Skipping system line %d: %s", line_number, line)
            continue

        match = match_line(line)
        if match is None:
            diagnostics.unmatched_lines += 1
            logger.debug("No format matched line %d: %s", line_number, line)
            continue

        try:
            timestamp = parse_timestamp(match.date_part, match.time_part)
        except ValueError as e:
            diagnostics.invalid_timestamps += 1
            if drop_invalid_timestamps:
                diagnostics.dropped_messages += 1
                logger.debug("Dropping line %d: %s", line_number, e)
                continue
            logger.debug("Line %d: %s; using current time", line_number, e)
            timestamp = now

        diagnostics.format_counts[match.format_name] = (
            diagnostics.format_counts.get(match.format_name, 0) + 1
        )
        messages.append(ParsedMessage(
            timestamp=timestamp,
            sender=match.sender,
            content=match.content,
        ))

        if match.sender not in seen_participants:
            seen_participants.add(match.sender)
            participants.append(match.sender)

        if earliest is None or timestamp < earliest:
            earliest = timestamp
        if latest is None or timestamp > latest:
            latest = timestamp

    logger.info(
        "Parsed %d messages from %d participants (%d lines skipped)",
        len(messages), len(participants), diagnostics.skipped_lines
    )

    return ParsedChat(
        messages=messages,
        participants=participants,
        start_date=earliest or now,
        end_date=latest or now,
        diagnostics=diagnostics,
    )


parse = parse_chat_text

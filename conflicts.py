"""Rule-based conflict detection.

Messages are flagged by simple lexical and punctuation heuristics, flagged
messages close to each other are grouped into threads, and threads with at
least two messages are reported as conflicts.
"""

import logging
import re
import string
from collections import Counter
from dataclasses import dataclass, field

from analytics import ChatAnalysis, percentage
from parser import ParsedChat, ParsedMessage

logger = logging.getLogger(__name__)


# Substrings of the lowercased content that flag a message
NEGATIVE_TERMS = (
    'angry',
    'upset',
    'annoyed',
    'sorry',
    'apologize',
    'disagree',
    'not true',
    'wrong',
    'stop',
    "don't",
)

# Words counted inside flagged messages
TRIGGER_WORDS = ('always', 'never', 'why', "can't", "don't", 'should', 'would', 'could')

# A thread whose last two messages contain one of these counts as resolved
RESOLUTION_TERMS = (
    'sorry',
    'apologize',
    'ok',
    'okay',
    'fine',
    'my bad',
    "you're right",
    'forgive',
    'understand',
    'love you',
)

APOLOGY_TERMS = ('sorry', 'apologize')

# Max distance, in flagged-message positions, between neighbours of one thread
THREAD_GAP = 5

# All-caps messages must be longer than this to count as shouting
SHOUTING_MIN_LENGTH = 5

MIN_THREAD_SIZE = 2
TOP_TRIGGERS = 5

# Flag reasons
NEGATIVE_WORD = 'negative_word'
PUNCTUATION = 'punctuation'
SHOUTING = 'shouting'

RESOLUTION_PATTERN = re.compile(
    r'\b(?:' + '|'.join(re.escape(term) for term in RESOLUTION_TERMS) + r')\b'
)

APOSTROPHES = str.maketrans({'\u2019': "'", '\u2018': "'"})


def _normalize(content: str) -> str:
    return content.lower().translate(APOSTROPHES)


def has_negative_term(content: str) -> bool:
    lowered = _normalize(content)
    return any(term in lowered for term in NEGATIVE_TERMS)


def has_frustration_punctuation(content: str) -> bool:
    """Check for '?' together with '!', or runs like '???' and '!!!'."""
    return ('?' in content and '!' in content) or '???' in content or '!!!' in content


def is_shouting(content: str) -> bool:
    """Check if the whole message is in capitals and long enough to matter."""
    content = content.strip()
    return len(content) > SHOUTING_MIN_LENGTH and content.isupper()


def flag_reasons(content: str) -> tuple[str, ...]:
    """Return the names of every rule that flags this content."""
    reasons = []
    if has_negative_term(content):
        reasons.append(NEGATIVE_WORD)
    if has_frustration_punctuation(content):
        reasons.append(PUNCTUATION)
    if is_shouting(content):
        reasons.append(SHOUTING)
    return tuple(reasons)


def trigger_tokens(content: str) -> list[str]:
    """Whitespace-split words with surrounding punctuation trimmed, apostrophes kept."""
    tokens = (word.strip(string.punctuation) for word in _normalize(content).split())
    return [t for t in tokens if t]


def is_resolution(content: str) -> bool:
    return RESOLUTION_PATTERN.search(_normalize(content)) is not None


@dataclass
class FlaggedMessage:
    """A message that tripped at least one conflict rule."""
    message: ParsedMessage
    message_index: int  # position in the full message list
    flagged_index: int  # position among flagged messages
    reasons: tuple[str, ...]

    @property
    def sender(self) -> str:
        return self.message.sender

    def to_dict(self) -> dict:
        return {
            "messageIndex": self.message_index,
            "flaggedIndex": self.flagged_index,
            "sender": self.message.sender,
            "timestamp": self.message.timestamp.isoformat(),
            "content": self.message.content,
            "reasons": list(self.reasons),
        }


@dataclass
class ConflictThread:
    """A run of flagged messages close to each other."""
    messages: list[FlaggedMessage] = field(default_factory=list)

    @property
    def is_significant(self) -> bool:
        return len(self.messages) >= MIN_THREAD_SIZE

    @property
    def initiator(self) -> str:
        return self.messages[0].sender

    @property
    def is_resolved(self) -> bool:
        """True if either of the last two messages reads as a resolution."""
        return any(is_resolution(f.message.content) for f in self.messages[-2:])

    def to_dict(self) -> dict:
        return {
            "initiator": self.initiator,
            "resolved": self.is_resolved,
            "significant": self.is_significant,
            "messages": [f.to_dict() for f in self.messages],
        }


@dataclass
class ConflictReport:
    """Conflict heuristics for a chat."""
    flagged_messages: list[FlaggedMessage]
    threads: list[ConflictThread]
    trigger_words: list[tuple[str, int]]
    resolution_rate: float
    initiation_percentages: dict[str, int]
    conflict_rate: float = 0.0
    flagged_by_participant: dict[str, int] = field(default_factory=dict)
    apologies_by_participant: dict[str, int] = field(default_factory=dict)

    @property
    def significant_threads(self) -> list[ConflictThread]:
        return [t for t in self.threads if t.is_significant]

    def to_dict(self) -> dict:
        return {
            "flaggedMessages": [f.to_dict() for f in self.flagged_messages],
            "threads": [t.to_dict() for t in self.threads],
            "significantThreadCount": len(self.significant_threads),
            "triggerWords": [{"word": w, "count": c} for w, c in self.trigger_words],
            "resolutionRate": self.resolution_rate,
            "initiationPercentages": dict(self.initiation_percentages),
            "conflictRate": self.conflict_rate,
            "flaggedByParticipant": dict(self.flagged_by_participant),
            "apologiesByParticipant": dict(self.apologies_by_participant),
        }


def find_flagged_messages(messages: list[ParsedMessage]) -> list[FlaggedMessage]:
    """Flag messages that match any conflict rule, keeping their order."""
    flagged: list[FlaggedMessage] = []
    for i, msg in enumerate(messages):
        reasons = flag_reasons(msg.content)
        if reasons:
            flagged.append(FlaggedMessage(
                message=msg,
                message_index=i,
                flagged_index=len(flagged),
                reasons=reasons,
            ))
    return flagged


def group_into_threads(
    flagged: list[FlaggedMessage],
    thread_gap: int = THREAD_GAP,
    by_message_index: bool = False
) -> list[ConflictThread]:
    """Group flagged messages whose positions are within thread_gap.

    Positions are counted among flagged messages, so consecutive flagged
    messages are always neighbours. With ``by_message_index`` the distance is
    measured in the full message list instead.
    """
    threads: list[ConflictThread] = []
    current: list[FlaggedMessage] = []
    last_index: int | None = None

    for item in flagged:
        index = item.message_index if by_message_index else item.flagged_index
        if last_index is not None and index - last_index <= thread_gap:
            current.append(item)
        else:
            if current:
                threads.append(ConflictThread(current))
            current = [item]
        last_index = index

    if current:
        threads.append(ConflictThread(current))

    return threads


def count_trigger_words(flagged: list[FlaggedMessage]) -> list[tuple[str, int]]:
    """Top trigger words across flagged messages, ties in first-seen order."""
    counts: Counter[str] = Counter()
    for item in flagged:
        for token in trigger_tokens(item.message.content):
            if token in TRIGGER_WORDS:
                counts[token] += 1
    return counts.most_common(TOP_TRIGGERS)


def detect_conflicts(
    chat: ParsedChat,
    analysis: ChatAnalysis,
    thread_gap: int = THREAD_GAP,
    by_message_index: bool = False
) -> ConflictReport:
    """Run the conflict heuristics over a parsed and analyzed chat."""
    participants = analysis.participants or list(chat.participants)

    flagged = find_flagged_messages(chat.messages)
    threads = group_into_threads(flagged, thread_gap=thread_gap, by_message_index=by_message_index)
    significant = [t for t in threads if t.is_significant]

    resolved = sum(1 for t in significant if t.is_resolved)
    resolution_rate = resolved / len(significant) if significant else 0.0

    initiations = Counter(t.initiator for t in significant)
    flagged_by_participant = {name: 0 for name in participants}
    apologies_by_participant = {name: 0 for name in participants}
    for item in flagged:
        flagged_by_participant[item.sender] = flagged_by_participant.get(item.sender, 0) + 1
        lowered = _normalize(item.message.content)
        if any(term in lowered for term in APOLOGY_TERMS):
            apologies_by_participant[item.sender] = apologies_by_participant.get(item.sender, 0) + 1

    total_messages = analysis.total_messages
    conflict_rate = round(len(flagged) / total_messages * 100, 1) if total_messages else 0.0

    logger.debug(
        "Flagged %d of %d messages, %d threads (%d significant)",
        len(flagged), total_messages, len(threads), len(significant)
    )

    return ConflictReport(
        flagged_messages=flagged,
        threads=threads,
        trigger_words=count_trigger_words(flagged),
        resolution_rate=resolution_rate,
        initiation_percentages={
            name: percentage(initiations[name], len(significant)) for name in participants
        },
        conflict_rate=conflict_rate,
        flagged_by_participant=flagged_by_participant,
        apologies_by_participant=apologies_by_participant,
    )

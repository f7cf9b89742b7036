"""Analytics engine for computing chat statistics."""

import logging
import math
from collections import Counter
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from types import MappingProxyType

from parser import ParsedChat, extract_emojis

logger = logging.getLogger(__name__)


# A message more than this long after the previous one starts a new conversation
NEW_CONVERSATION_THRESHOLD = timedelta(hours=3)

# Gaps at or above this are conversation breaks, not slow replies
MAX_RESPONSE_TIME = timedelta(hours=24)

# Words must be longer than this to be counted in frequency lists
MIN_WORD_LENGTH = 3

TOP_WORDS = 20
TOP_WORDS_PER_PARTICIPANT = 10
TOP_EMOJIS = 8


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positive values."""
    return math.floor(value + 0.5)


def percentage(part: int, whole: int) -> int:
    """Integer percentage of part in whole, 0 when whole is 0."""
    if not whole:
        return 0
    return round_half_up(part / whole * 100)


def to_milliseconds(delta: timedelta) -> int:
    return delta // timedelta(milliseconds=1)


def read_only(mapping: dict) -> Mapping:
    """Wrap a finished map in a read-only view."""
    return MappingProxyType(mapping)


@dataclass(frozen=True)
class StarterStats:
    """How often a participant opened a new conversation."""
    count: int = 0
    percentage: int = 0


@dataclass(frozen=True)
class ResponseTime:
    """Reply latency in milliseconds attributed to a participant."""
    total: int = 0
    count: int = 0
    average: float = 0.0


@dataclass(frozen=True)
class EmojiUsage:
    """Messages containing at least one emoji, plus the most used emojis."""
    total: int = 0
    by_participant: Mapping[str, int] = field(default_factory=lambda: MappingProxyType({}))
    top_emojis: tuple[tuple[str, int], ...] = ()


@dataclass(frozen=True)
class ChatDuration:
    """Whole days, 30-day months and 365-day years between first and last message."""
    days: int = 0
    months: int = 0
    years: int = 0


@dataclass(frozen=True)
class ChatAnalysis:
    """Complete analytics for a chat.

    Per-participant maps follow participant order and are read-only views;
    rankings are tuples, so a finished analysis cannot be changed in place.
    """
    total_messages: int
    message_count_by_participant: Mapping[str, int]
    message_percentage_by_participant: Mapping[str, int]
    word_count_by_participant: Mapping[str, int]
    average_message_length_by_participant: Mapping[str, int]
    most_frequent_words: tuple[tuple[str, int], ...]
    most_frequent_words_per_participant: Mapping[str, tuple[tuple[str, int], ...]]
    conversation_starters: Mapping[str, StarterStats]
    response_time: Mapping[str, ResponseTime]
    emoji_usage: EmojiUsage
    chat_duration: ChatDuration
    messages_per_day: float = 0.0

    @property
    def participants(self) -> list[str]:
        return list(self.message_count_by_participant)

    def get_top_chatter(self) -> str | None:
        """Get the participant with most messages."""
        if not self.message_count_by_participant:
            return None
        return max(self.message_count_by_participant, key=lambda n: self.message_count_by_participant[n])

    def get_conversation_catalyst(self) -> str | None:
        """Get the participant who started most conversations."""
        if not self.conversation_starters:
            return None
        return max(self.conversation_starters, key=lambda n: self.conversation_starters[n].count)

    def to_dict(self) -> dict:
        return {
            "totalMessages": self.total_messages,
            "messageCountByParticipant": dict(self.message_count_by_participant),
            "messagePercentageByParticipant": dict(self.message_percentage_by_participant),
            "wordCountByParticipant": dict(self.word_count_by_participant),
            "averageMessageLengthByParticipant": dict(self.average_message_length_by_participant),
            "mostFrequentWords": [
                {"word": w, "count": c} for w, c in self.most_frequent_words
            ],
            "mostFrequentWordsPerParticipant": {
                name: [{"word": w, "count": c} for w, c in words]
                for name, words in self.most_frequent_words_per_participant.items()
            },
            "conversationStarters": {
                name: {"count": s.count, "percentage": s.percentage}
                for name, s in self.conversation_starters.items()
            },
            "responseTime": {
                name: {"total": r.total, "count": r.count, "average": r.average}
                for name, r in self.response_time.items()
            },
            "emojiUsage": {
                "total": self.emoji_usage.total,
                "byParticipant": dict(self.emoji_usage.by_participant),
                "topEmojis": [
                    {"emoji": e, "count": c} for e, c in self.emoji_usage.top_emojis
                ],
            },
            "chatDuration": {
                "days": self.chat_duration.days,
                "months": self.chat_duration.months,
                "years": self.chat_duration.years,
            },
            "messagesPerDay": self.messages_per_day,
        }


def compute_chat_duration(start_date: datetime, end_date: datetime) -> ChatDuration:
    """Compute whole days, months and years between two dates."""
    days = (end_date - start_date).days
    return ChatDuration(days=days, months=days // 30, years=days // 365)


def analyze_chat(
    chat: ParsedChat,
    new_conversation_threshold: timedelta = NEW_CONVERSATION_THRESHOLD,
    max_response_time: timedelta = MAX_RESPONSE_TIME
) -> ChatAnalysis:
    """Perform complete analysis on a chat.

    Messages are scanned once, in order. A message starts a conversation if
    it is the first one or follows the previous message by more than
    ``new_conversation_threshold``. When the sender changes, the gap since the
    previous message is a response time for the new sender, counted only if
    it is shorter than ``max_response_time``.

    All accumulators are local to the call, so the same chat always yields an
    equal analysis.
    """
    participants = list(chat.participants)
    # Senders missing from the participant list still get counted
    for msg in chat.messages:
        if msg.sender not in participants:
            participants.append(msg.sender)

    message_counts = {name: 0 for name in participants}
    word_counts = {name: 0 for name in participants}
    char_counts = {name: 0 for name in participants}
    emoji_counts = {name: 0 for name in participants}
    starter_counts = {name: 0 for name in participants}
    response_totals = {name: 0 for name in participants}
    response_counts = {name: 0 for name in participants}
    word_frequency: Counter[str] = Counter()
    word_frequency_by_participant: dict[str, Counter[str]] = {
        name: Counter() for name in participants
    }
    emoji_counter: Counter[str] = Counter()

    last_timestamp: datetime | None = None
    last_sender: str | None = None

    for msg in chat.messages:
        sender = msg.sender
        words = msg.words

        message_counts[sender] += 1
        word_counts[sender] += len(words)
        char_counts[sender] += len(msg.content)

        if msg.has_emoji:
            emoji_counts[sender] += 1
            emoji_counter.update(extract_emojis(msg.content))

        for word in words:
            if len(word) > MIN_WORD_LENGTH:
                word_frequency[word] += 1
                word_frequency_by_participant[sender][word] += 1

        # Conversation starts
        if last_timestamp is None or msg.timestamp - last_timestamp > new_conversation_threshold:
            starter_counts[sender] += 1

        # Response times
        if last_timestamp is not None and last_sender is not None and last_sender != sender:
            gap = msg.timestamp - last_timestamp
            if gap < max_response_time:
                response_totals[sender] += to_milliseconds(gap)
                response_counts[sender] += 1

        last_timestamp = msg.timestamp
        last_sender = sender

    total_messages = len(chat.messages)
    total_starts = sum(starter_counts.values())

    response_time: dict[str, ResponseTime] = {}
    for name in participants:
        count = response_counts[name]
        response_time[name] = ResponseTime(
            total=response_totals[name],
            count=count,
            average=response_totals[name] / count if count else 0.0,
        )

    chat_duration = compute_chat_duration(chat.start_date, chat.end_date)
    messages_per_day = (
        round(total_messages / chat_duration.days, 1) if chat_duration.days > 0 else 0.0
    )

    logger.debug(
        "Analyzed %d messages: %d conversation starts, %d emoji messages",
        total_messages, total_starts, sum(emoji_counts.values())
    )

    return ChatAnalysis(
        total_messages=total_messages,
        message_count_by_participant=read_only(message_counts),
        message_percentage_by_participant=read_only({
            name: percentage(message_counts[name], total_messages) for name in participants
        }),
        word_count_by_participant=read_only(word_counts),
        average_message_length_by_participant=read_only({
            name: round_half_up(char_counts[name] / message_counts[name]) if message_counts[name] else 0
            for name in participants
        }),
        most_frequent_words=tuple(word_frequency.most_common(TOP_WORDS)),
        most_frequent_words_per_participant=read_only({
            name: tuple(word_frequency_by_participant[name].most_common(TOP_WORDS_PER_PARTICIPANT))
            for name in participants
        }),
        conversation_starters=read_only({
            name: StarterStats(
                count=starter_counts[name],
                percentage=percentage(starter_counts[name], total_starts),
            )
            for name in participants
        }),
        response_time=read_only(response_time),
        emoji_usage=EmojiUsage(
            total=sum(emoji_counts.values()),
            by_participant=read_only(emoji_counts),
            top_emojis=tuple(emoji_counter.most_common(TOP_EMOJIS)),
        ),
        chat_duration=chat_duration,
        messages_per_day=messages_per_day,
    )


analyze = analyze_chat

"""Tests for analytics.py using synthetic chats."""

import dataclasses
import json
from datetime import datetime, timedelta

import pytest

from analytics import (
    MAX_RESPONSE_TIME,
    NEW_CONVERSATION_THRESHOLD,
    ChatDuration,
    ResponseTime,
    StarterStats,
    analyze,
    analyze_chat,
    compute_chat_duration,
    percentage,
    round_half_up,
)

from helpers import make_chat


# ── TestSampleChat ────────────────


class TestSampleChat:
    def test_counts(self, sample_analysis):
        assert sample_analysis.total_messages == 3
        assert sample_analysis.message_count_by_participant == {"Alice": 2, "Bob": 1}
        assert sample_analysis.word_count_by_participant == {"Alice": 6, "Bob": 2}

    def test_percentages(self, sample_analysis):
        assert sample_analysis.message_percentage_by_participant == {"Alice": 67, "Bob": 33}

    def test_average_message_length(self, sample_analysis):
        # "Hello!" (6) and "why are you ignoring me?!" (25) average 15.5
        assert sample_analysis.average_message_length_by_participant == {"Alice": 16, "Bob": 10}

    def test_emoji_usage(self, sample_analysis):
        usage = sample_analysis.emoji_usage
        assert usage.total == 1
        assert usage.by_participant == {"Alice": 0, "Bob": 1}
        assert usage.top_emojis == (("😊", 1),)

    def test_conversation_starters(self, sample_analysis):
        # The first message always starts a conversation; 10:05 -> 14:00 is over 3h
        starters = sample_analysis.conversation_starters
        assert starters["Alice"] == StarterStats(count=2, percentage=100)
        assert starters["Bob"] == StarterStats(count=0, percentage=0)

    def test_response_times(self, sample_analysis):
        response = sample_analysis.response_time
        assert response["Bob"] == ResponseTime(total=300_000, count=1, average=300_000.0)
        assert response["Alice"].count == 1
        assert response["Alice"].total == (3 * 3600 + 55 * 60) * 1000

    def test_frequent_words(self, sample_analysis):
        assert sample_analysis.most_frequent_words == (
            ("hello", 1), ("there", 1), ("ignoring", 1),
        )
        assert sample_analysis.most_frequent_words_per_participant == {
            "Alice": (("hello", 1), ("ignoring", 1)),
            "Bob": (("there", 1),),
        }

    def test_duration(self, sample_analysis):
        assert sample_analysis.chat_duration == ChatDuration(days=0, months=0, years=0)
        assert sample_analysis.messages_per_day == 0.0

    def test_helpers(self, sample_analysis):
        assert sample_analysis.participants == ["Alice", "Bob"]
        assert sample_analysis.get_top_chatter() == "Alice"
        assert sample_analysis.get_conversation_catalyst() == "Alice"


# ── TestConversationStarters ────────────────


class TestConversationStarters:
    def test_back_and_forth_has_one_starter(self):
        chat = make_chat([(0, "A", "hi"), (1, "B", "hey"), (2, "A", "how are you")])
        analysis = analyze_chat(chat)
        assert analysis.conversation_starters["A"].count == 1
        assert analysis.conversation_starters["B"].count == 0

    def test_gap_of_exactly_threshold_is_not_a_new_conversation(self):
        chat = make_chat([(0, "A", "hi"), (180, "B", "hey")])
        analysis = analyze_chat(chat)
        assert analysis.conversation_starters["B"].count == 0

    def test_gap_over_threshold_is_a_new_conversation(self):
        chat = make_chat([(0, "A", "hi"), (181, "B", "hey")])
        analysis = analyze_chat(chat)
        assert analysis.conversation_starters["B"].count == 1
        assert analysis.conversation_starters["A"].percentage == 50
        assert analysis.conversation_starters["B"].percentage == 50

    def test_custom_threshold(self):
        chat = make_chat([(0, "A", "hi"), (20, "B", "hey")])
        analysis = analyze_chat(chat, new_conversation_threshold=timedelta(minutes=10))
        assert analysis.conversation_starters["B"].count == 1

    def test_default_threshold(self):
        assert NEW_CONVERSATION_THRESHOLD == timedelta(hours=3)


# ── TestResponseTime ────────────────


class TestResponseTime:
    def test_each_reply_credits_the_replier(self):
        chat = make_chat([(0, "A", "hi"), (1, "B", "hey"), (2, "A", "how are you")])
        analysis = analyze_chat(chat)
        assert analysis.response_time["B"] == ResponseTime(total=60_000, count=1, average=60_000.0)
        assert analysis.response_time["A"] == ResponseTime(total=60_000, count=1, average=60_000.0)

    def test_same_sender_is_not_a_reply(self):
        chat = make_chat([(0, "A", "hi"), (1, "A", "anyone?")])
        analysis = analyze_chat(chat)
        assert analysis.response_time["A"] == ResponseTime(total=0, count=0, average=0.0)

    def test_gap_of_a_full_day_is_excluded(self):
        chat = make_chat([(0, "A", "hi"), (24 * 60, "B", "sorry, just saw this")])
        assert analyze_chat(chat).response_time["B"].count == 0

    def test_gap_just_under_a_day_is_counted(self):
        chat = make_chat([(0, "A", "hi"), (24 * 60 - 1, "B", "hey")])
        response = analyze_chat(chat).response_time["B"]
        assert response.count == 1
        assert response.total == (24 * 60 - 1) * 60_000

    def test_average_over_samples(self):
        chat = make_chat([(0, "A", "hi"), (2, "B", "hey"), (3, "A", "ok"), (7, "B", "sure")])
        response = analyze_chat(chat).response_time["B"]
        assert response.count == 2
        assert response.average == 180_000.0

    def test_default_ceiling(self):
        assert MAX_RESPONSE_TIME == timedelta(hours=24)


# ── TestPercentages ────────────────


class TestPercentages:
    def test_round_half_up(self):
        assert round_half_up(12.5) == 13
        assert round_half_up(87.5) == 88
        assert round_half_up(33.33) == 33

    def test_percentage_of_nothing(self):
        assert percentage(0, 0) == 0

    def test_three_way_split_is_not_renormalized(self):
        chat = make_chat([(0, "A", "one"), (1, "B", "two"), (2, "C", "three")])
        percentages = analyze_chat(chat).message_percentage_by_participant
        assert percentages == {"A": 33, "B": 33, "C": 33}

    def test_two_way_split_can_exceed_100(self):
        entries = [(0, "A", "one")] + [(i, "B", "msg") for i in range(1, 8)]
        percentages = analyze_chat(make_chat(entries)).message_percentage_by_participant
        assert percentages == {"A": 13, "B": 88}


# ── TestWordFrequency ────────────────


class TestWordFrequency:
    def test_ties_keep_first_seen_order(self):
        chat = make_chat([(0, "A", "zeta alpha"), (1, "B", "alpha beta")])
        assert analyze_chat(chat).most_frequent_words == (("alpha", 2), ("zeta", 1), ("beta", 1))

    def test_short_words_are_ignored(self):
        chat = make_chat([(0, "A", "the cat sat on a mat")])
        analysis = analyze_chat(chat)
        assert analysis.most_frequent_words == ()
        assert analysis.word_count_by_participant == {"A": 6}

    def test_global_list_is_truncated(self):
        words = " ".join(f"word{i:02d}" for i in range(25))
        analysis = analyze_chat(make_chat([(0, "A", words)]))
        assert len(analysis.most_frequent_words) == 20
        assert analysis.most_frequent_words[0] == ("word00", 1)
        assert len(analysis.most_frequent_words_per_participant["A"]) == 10


# ── TestDuration ────────────────


class TestDuration:
    def test_compute_chat_duration(self):
        duration = compute_chat_duration(datetime(2023, 1, 1), datetime(2024, 3, 1, 12, 0))
        assert duration == ChatDuration(days=425, months=14, years=1)

    def test_messages_per_day(self):
        entries = [(i * 60 * 12, "A" if i % 2 else "B", "message") for i in range(11)]
        analysis = analyze_chat(make_chat(entries))
        assert analysis.chat_duration.days == 5
        assert analysis.messages_per_day == 2.2


# ── TestDegenerateInput ────────────────


class TestDegenerateInput:
    def test_empty_chat(self, empty_chat):
        analysis = analyze_chat(empty_chat)
        assert analysis.total_messages == 0
        assert analysis.message_count_by_participant == {}
        assert analysis.message_percentage_by_participant == {}
        assert analysis.most_frequent_words == ()
        assert analysis.emoji_usage.total == 0
        assert analysis.chat_duration == ChatDuration()
        assert analysis.messages_per_day == 0.0
        assert analysis.get_top_chatter() is None
        assert analysis.get_conversation_catalyst() is None

    def test_single_participant(self):
        analysis = analyze_chat(make_chat([(0, "A", "note to self"), (5, "A", "another")]))
        assert analysis.message_percentage_by_participant == {"A": 100}
        assert analysis.response_time["A"].average == 0.0
        assert analysis.conversation_starters["A"] == StarterStats(count=1, percentage=100)


# ── TestDeterminism ────────────────


class TestDeterminism:
    def test_repeated_analysis_is_identical(self, sample_chat):
        first = analyze_chat(sample_chat)
        second = analyze_chat(sample_chat)
        assert first == second
        assert first.to_dict() == second.to_dict()

    def test_analysis_is_frozen(self, sample_analysis):
        with pytest.raises(dataclasses.FrozenInstanceError):
            sample_analysis.total_messages = 10

    @pytest.mark.parametrize("field_name", [
        "message_count_by_participant",
        "message_percentage_by_participant",
        "word_count_by_participant",
        "average_message_length_by_participant",
        "most_frequent_words_per_participant",
        "conversation_starters",
        "response_time",
    ])
    def test_participant_maps_are_read_only(self, sample_analysis, field_name):
        mapping = getattr(sample_analysis, field_name)
        with pytest.raises(TypeError):
            mapping["Alice"] = 99
        with pytest.raises(TypeError):
            del mapping["Bob"]
        assert sample_analysis.message_count_by_participant["Alice"] == 2

    def test_emoji_usage_is_read_only(self, sample_analysis):
        with pytest.raises(TypeError):
            sample_analysis.emoji_usage.by_participant["Alice"] = 5
        assert isinstance(sample_analysis.emoji_usage.top_emojis, tuple)

    def test_rankings_are_tuples(self, sample_analysis):
        assert isinstance(sample_analysis.most_frequent_words, tuple)
        assert all(
            isinstance(words, tuple)
            for words in sample_analysis.most_frequent_words_per_participant.values()
        )

    def test_alias(self):
        assert analyze is analyze_chat


# ── TestToDict ────────────────


class TestToDict:
    def test_json_serializable(self, sample_analysis):
        data = json.loads(json.dumps(sample_analysis.to_dict(), ensure_ascii=False))
        assert data["totalMessages"] == 3
        assert data["mostFrequentWords"][0] == {"word": "hello", "count": 1}
        assert data["conversationStarters"]["Alice"] == {"count": 2, "percentage": 100}
        assert data["responseTime"]["Bob"] == {"total": 300000, "count": 1, "average": 300000.0}
        assert data["emojiUsage"]["topEmojis"] == [{"emoji": "😊", "count": 1}]
        assert data["chatDuration"] == {"days": 0, "months": 0, "years": 0}

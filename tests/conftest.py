"""Shared fixtures for chat insights tests."""

from __future__ import annotations

import pytest

from analytics import analyze_chat
from parser import parse_chat_text

from helpers import NOW


SAMPLE_CHAT = (
    "[01/02/23, 10:00:00] Alice: Hello!\n"
    "[01/02/23, 10:05:00] Bob: hi there 😊\n"
    "[01/02/23, 14:00:00] Alice: why are you ignoring me?!\n"
)


@pytest.fixture()
def sample_text():
    """Three-message chat between Alice and Bob."""
    return SAMPLE_CHAT


@pytest.fixture()
def sample_chat(sample_text):
    return parse_chat_text(sample_text, now=NOW)


@pytest.fixture()
def sample_analysis(sample_chat):
    return analyze_chat(sample_chat)


@pytest.fixture()
def empty_chat():
    return parse_chat_text("", now=NOW)


@pytest.fixture()
def chat_file(tmp_path, sample_text):
    """The sample chat written to disk."""
    path = tmp_path / "alice_and_bob.txt"
    path.write_text(sample_text, encoding="utf-8")
    return path

"""Shared test helpers for chat insights tests.

Regular functions (not fixtures) that can be imported by any test module.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from parser import ParsedChat, parse_chat_text

NOW = datetime(2024, 6, 1, 12, 0, 0)
BASE = datetime(2023, 2, 1, 10, 0, 0)


def make_line(when: datetime, sender: str, content: str) -> str:
    """Build a '[DD/MM/YY, HH:MM:SS] Sender: content' line."""
    return f"[{when:%d/%m/%y}, {when:%H:%M:%S}] {sender}: {content}"


def make_chat_text(entries: list[tuple[float, str, str]], base: datetime = BASE) -> str:
    """Build chat text from (minutes_after_base, sender, content) tuples."""
    return "\n".join(
        make_line(base + timedelta(minutes=minutes), sender, content)
        for minutes, sender, content in entries
    )


def make_chat(entries: list[tuple[float, str, str]], base: datetime = BASE) -> ParsedChat:
    """Parse chat text built from (minutes_after_base, sender, content) tuples."""
    return parse_chat_text(make_chat_text(entries, base), now=NOW)

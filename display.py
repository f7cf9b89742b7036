"""Terminal rendering of chat insights."""

from rich.box import ROUNDED
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from analytics import ChatAnalysis
from conflicts import ConflictReport
from parser import ParsedChat


console = Console()
# Diagnostics and errors, kept off stdout so reports can be piped
err_console = Console(stderr=True)


COLORS = {
    'primary': '#1DB954',
    'accent1': '#FF6B6B',
    'accent2': '#4ECDC4',
    'accent3': '#FFE66D',
    'accent4': '#A855F7',
}

PARTICIPANT_COLORS = [
    '#FF6B6B',  # Coral
    '#4ECDC4',  # Teal
    '#FFE66D',  # Yellow
    '#A855F7',  # Purple
    '#F472B6',  # Pink
    '#60A5FA',  # Blue
    '#34D399',  # Emerald
]


def get_participant_color(index: int) -> str:
    """Get a color for a participant by index."""
    return PARTICIPANT_COLORS[index % len(PARTICIPANT_COLORS)]


def format_response_time(milliseconds: float) -> str:
    """Format a latency as 45s, 12m or 3h 20m."""
    seconds = int(milliseconds // 1000)
    if seconds < 60:
        return f"{seconds}s"
    minutes = seconds // 60
    if minutes < 60:
        return f"{minutes}m"
    hours, minutes = divmod(minutes, 60)
    return f"{hours}h {minutes}m"


def print_header(title: str) -> None:
    console.print()
    console.print(Panel(
        Text(title, justify="center", style=f"bold {COLORS['primary']}"),
        box=ROUNDED,
        border_style=COLORS['primary'],
    ))


def print_section_header(title: str, color: str = COLORS['primary']) -> None:
    """Print a section header."""
    console.print()
    console.rule(f"[bold {color}]{title}[/]", style=color)
    console.print()


def print_overview(chat: ParsedChat, analysis: ChatAnalysis) -> None:
    """Print totals, date range and parse diagnostics."""
    print_section_header("OVERVIEW")

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("stat", style="dim")
    table.add_column("value", style="bold")

    duration = analysis.chat_duration
    table.add_row("Messages", f"{analysis.total_messages:,}")
    table.add_row("Participants", f"{len(chat.participants)}")
    table.add_row("From", chat.start_date.strftime('%Y-%m-%d %H:%M'))
    table.add_row("To", chat.end_date.strftime('%Y-%m-%d %H:%M'))
    table.add_row(
        "Duration",
        f"{duration.days:,} days ({duration.months} months, {duration.years} years)"
    )
    table.add_row("Messages per day", f"{analysis.messages_per_day:.1f}")
    table.add_row("Skipped lines", f"{chat.diagnostics.skipped_lines:,}")
    if chat.diagnostics.invalid_timestamps:
        table.add_row(
            "Unreadable timestamps",
            f"[{COLORS['accent1']}]{chat.diagnostics.invalid_timestamps:,}[/]"
        )

    console.print(table)


def print_participant_table(analysis: ChatAnalysis) -> None:
    """Print per-participant counts side by side."""
    print_section_header("PARTICIPANTS")

    table = Table(box=ROUNDED, header_style="bold")
    table.add_column("Name")
    table.add_column("Messages", justify="right")
    table.add_column("Share", justify="right")
    table.add_column("Words", justify="right")
    table.add_column("Avg Length", justify="right")
    table.add_column("Starters", justify="right")
    table.add_column("Avg Reply", justify="right")
    table.add_column("Emoji Msgs", justify="right")

    for i, name in enumerate(analysis.participants):
        starters = analysis.conversation_starters[name]
        response = analysis.response_time[name]
        table.add_row(
            Text(name, style=f"bold {get_participant_color(i)}"),
            f"{analysis.message_count_by_participant[name]:,}",
            f"{analysis.message_percentage_by_participant[name]}%",
            f"{analysis.word_count_by_participant[name]:,}",
            f"{analysis.average_message_length_by_participant[name]} chars",
            f"{starters.count} ({starters.percentage}%)",
            format_response_time(response.average) if response.count else "-",
            f"{analysis.emoji_usage.by_participant[name]:,}",
        )

    console.print(table)


def print_top_words(analysis: ChatAnalysis, limit: int = 10) -> None:
    """Print the most frequent words overall and per participant."""
    print_section_header("TOP WORDS", COLORS['accent2'])

    if not analysis.most_frequent_words:
        console.print("  [dim]No words long enough to rank.[/]")
        return

    for i, (word, count) in enumerate(analysis.most_frequent_words[:limit], 1):
        console.print(f"  [{COLORS['accent2']}]{i:>2}.[/] {escape(word)} [dim]({count:,})[/]")

    for i, name in enumerate(analysis.participants):
        words = analysis.most_frequent_words_per_participant[name][:5]
        if words:
            listed = escape(', '.join(word for word, _ in words))
            console.print(f"\n  [bold {get_participant_color(i)}]{escape(name)}:[/] {listed}")


def print_emoji_usage(analysis: ChatAnalysis) -> None:
    print_section_header("EMOJIS", COLORS['accent3'])

    usage = analysis.emoji_usage
    if not usage.total:
        console.print("  [dim]No emojis found in this chat.[/]")
        return

    console.print(f"  {usage.total:,} messages contain emojis")
    if usage.top_emojis:
        console.print("  " + '  '.join(f"{e} {c}" for e, c in usage.top_emojis))


def print_conflicts(report: ConflictReport) -> None:
    """Print the conflict summary panel."""
    print_section_header("CONFLICTS", COLORS['accent1'])

    significant = report.significant_threads
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("stat", style="dim")
    table.add_column("value", style="bold")
    table.add_row("Potential conflicts", f"{len(significant)}")
    table.add_row("Flagged messages", f"{len(report.flagged_messages)}")
    table.add_row("Conflict rate", f"{report.conflict_rate:.1f}%")
    table.add_row("Resolution rate", f"{report.resolution_rate * 100:.0f}%")
    console.print(table)

    if report.trigger_words:
        triggers = '  '.join(f"{w} [dim]{c}[/]" for w, c in report.trigger_words)
        console.print(f"\n  [bold]Triggers:[/] {triggers}")
    else:
        console.print("\n  [green]No common conflict triggers detected[/]")

    if significant:
        initiators = ', '.join(
            f"{escape(name)} {pct}%" for name, pct in report.initiation_percentages.items() if pct
        )
        console.print(f"  [bold]Started by:[/] {initiators}")

        for thread in significant[:3]:
            lines = '\n'.join(
                f"[bold]{escape(f.sender)}:[/] {escape(f.message.content)}" for f in thread.messages[:6]
            )
            title = "resolved" if thread.is_resolved else "unresolved"
            console.print(Panel(lines, title=title, box=ROUNDED, border_style=COLORS['accent1']))


def print_report(
    chat: ParsedChat,
    analysis: ChatAnalysis,
    report: ConflictReport,
    title: str = "Chat Insights",
    top_words: int = 10
) -> None:
    """Print the full terminal report."""
    print_header(title)
    print_overview(chat, analysis)
    print_participant_table(analysis)
    print_top_words(analysis, limit=top_words)
    print_emoji_usage(analysis)
    print_conflicts(report)
    console.print()

#!/usr/bin/env python3
"""Chat Insights - statistics and conflict heuristics for chat exports."""

import argparse
import json
import logging
import sys
from pathlib import Path

from rich.logging import RichHandler

from parser import ParsedChat, parse_chat_text
from analytics import analyze_chat
from conflicts import detect_conflicts
from display import console, err_console, print_report

logger = logging.getLogger(__name__)


def configure_logging(verbose: bool = False) -> None:
    """Send log records through rich on stderr."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def load_chat_file(file_path: str | Path, drop_invalid_timestamps: bool = False) -> ParsedChat:
    """Read a chat export from disk and parse it."""
    file_path = Path(file_path)

    # utf-8-sig drops the byte order mark some exporters write
    with open(file_path, 'r', encoding='utf-8-sig') as f:
        text = f.read()

    logger.debug("Read %d characters from %s", len(text), file_path)
    return parse_chat_text(text, drop_invalid_timestamps=drop_invalid_timestamps)


def run_insights(
    chat_file: Path,
    as_json: bool = False,
    strict_timestamps: bool = False,
    top_words: int = 10
) -> int:
    """Run the full pipeline on one file. Returns the process exit code."""
    chat = load_chat_file(chat_file, drop_invalid_timestamps=strict_timestamps)

    if chat.is_empty:
        err_console.print(
            f"[bold red]Error:[/] No valid messages found in {chat_file}. "
            "Make sure it is a chat export in a supported format."
        )
        return 1

    analysis = analyze_chat(chat)
    report = detect_conflicts(chat, analysis)

    if as_json:
        payload = {
            "chat": chat.to_dict(),
            "analysis": analysis.to_dict(),
            "conflicts": report.to_dict(),
        }
        print(json.dumps(payload, indent=2, ensure_ascii=False))
        return 0

    title = chat_file.stem.replace('-', ' ').replace('_', ' ').title()
    print_report(chat, analysis, report, title=title, top_words=top_words)
    return 0


def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Chat Insights - statistics and conflict heuristics for chat exports",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py chat.txt
  python main.py chat.txt --json > insights.json
  python main.py chat.txt --strict-timestamps --top 20
        """
    )

    parser.add_argument(
        "chat_file",
        type=Path,
        help="Path to a chat export text file"
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the analysis as JSON instead of the terminal report"
    )
    parser.add_argument(
        "--strict-timestamps",
        action="store_true",
        help="Drop messages whose date or time cannot be read instead of stamping them with the current time"
    )
    parser.add_argument(
        "--top",
        type=int,
        default=10,
        help="Number of top words to show (default: 10)"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Log skipped lines and other parser decisions"
    )

    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    # Validate chat file
    if not args.chat_file.exists():
        err_console.print(f"[bold red]Error:[/] File not found: {args.chat_file}")
        sys.exit(1)

    try:
        exit_code = run_insights(
            chat_file=args.chat_file,
            as_json=args.json,
            strict_timestamps=args.strict_timestamps,
            top_words=args.top,
        )
    except UnicodeDecodeError:
        err_console.print(f"[bold red]Error:[/] Not UTF-8 text: {args.chat_file}")
        sys.exit(1)
    except KeyboardInterrupt:
        console.print("\n[dim]Cancelled.[/]")
        sys.exit(0)
    except Exception as e:
        err_console.print(f"[bold red]Error:[/] {e}")
        raise

    if exit_code:
        sys.exit(exit_code)


if __name__ == "__main__":
    main()

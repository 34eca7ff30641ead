"""Refuse a commit when the example secrets file no longer holds a placeholder token."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

PLACEHOLDER_TOKEN = "your_bot_token_here"
DEFAULT_EXAMPLE = Path(__file__).resolve().parents[1] / "config" / "secrets.yaml.example"


def token_lines(text: str) -> list[str]:
    """Return the ``token:`` entries of a secrets file, stripped."""
    return [line.strip() for line in text.splitlines() if line.strip().startswith("token:")]


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("example", nargs="?", type=Path, default=DEFAULT_EXAMPLE)
    args = parser.parse_args(argv)

    entries = token_lines(args.example.read_text(encoding="utf-8"))
    offending = [entry for entry in entries if PLACEHOLDER_TOKEN not in entry]
    if not entries or offending:
        print(
            f"{args.example}: every bot token must stay '{PLACEHOLDER_TOKEN}'; "
            "keep real tokens in config/secrets.yaml only.",
            file=sys.stderr,
        )
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

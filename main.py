"""Command-line entry point — search ErogameScape and print resolved metadata as JSON.

Usage:
    python main.py search <keyword>
    python main.py resolve <erogamescape_id>
    python main.py match "<exact title>"
    python main.py config [key=value ...]
"""

from __future__ import annotations

import argparse
import json
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Any

import httpx
from loguru import logger

from vnmeta.config import Config, get_config
from vnmeta.context import create_context
from vnmeta.logger import setup_logger
from vnmeta.models.game_record import GameRecord


def record_to_dict(record: GameRecord) -> dict[str, Any]:
    """Stored fields plus the derived cover/link/rating accessors."""
    data = asdict(record)
    data["release_date"] = record.release_date.isoformat() if record.release_date else None
    data["cover_url"] = record.cover_url
    data["age_rating"] = record.age_rating
    data["links"] = [asdict(link) for link in record.links]
    return data


def parse_assignment(text: str) -> tuple[str, Any]:
    """``key=value``; the value is read as JSON when it parses, else kept as text."""
    key, sep, raw = text.partition("=")
    key = key.strip()
    if not sep or not key:
        raise argparse.ArgumentTypeError(f"expected KEY=VALUE, got '{text}'")
    try:
        value = json.loads(raw)
    except json.JSONDecodeError:
        value = raw
    return key, value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vnmeta", description="Visual novel metadata from ErogameScape, DLsite, Getchu and VNDB."
    )
    parser.add_argument("--config-dir", type=Path, help="directory holding config.json")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p_search = sub.add_parser("search", help="list candidates for a keyword")
    p_search.add_argument("keyword")

    p_resolve = sub.add_parser("resolve", help="resolve an ErogameScape game id")
    p_resolve.add_argument("game_id", type=int)

    p_match = sub.add_parser("match", help="resolve only on an exact title match")
    p_match.add_argument("name")

    p_config = sub.add_parser("config", help="show settings, or change them with key=value")
    p_config.add_argument(
        "assignments", nargs="*", type=parse_assignment, metavar="KEY=VALUE"
    )
    return parser


def run_config(config: Config, assignments: list[tuple[str, Any]]) -> Any:
    """Apply *assignments* in one write; returns what to print."""
    if not assignments:
        return config.to_dict()
    with config.batch_update():
        for key, value in assignments:
            config.set(key, value)
    logger.info(f"Saved {len(assignments)} setting(s) to {config.path}")
    return {key: config.get(key) for key, _ in assignments}


def print_json(output: Any) -> None:
    json.dump(output, sys.stdout, ensure_ascii=False, indent=2, default=str)
    sys.stdout.write("\n")


def main(argv: list[str] | None = None) -> int:
    """Application entry point."""
    args = build_parser().parse_args(argv)

    config = Config(args.config_dir) if args.config_dir else get_config()
    setup_logger(config.data_dir / "logs", verbose=args.verbose)

    if args.command == "config":
        print_json(run_config(config, args.assignments))
        return 0

    ctx = create_context(config)
    try:
        if args.command == "search":
            output: Any = [asdict(c) for c in ctx.search(args.keyword)]
        elif args.command == "resolve":
            record = ctx.resolve(args.game_id)
            output = record_to_dict(record) if record else None
        else:
            record = ctx.resolve_automatic(args.name)
            output = record_to_dict(record) if record else None
    except httpx.HTTPError as e:
        logger.error(f"ErogameScape request failed: {e}")
        return 1
    finally:
        ctx.close()

    if output is None:
        logger.info("No match")
        return 2
    print_json(output)
    return 0


if __name__ == "__main__":
    sys.exit(main())

#!/usr/bin/env python3
"""
Command-line interface for the daily latency stats store.

Usage:
    edgestats record --rtt 23 --colo SJC --country US
    edgestats rank --rtt 23 --day 2026-10-18
    edgestats leaderboard --day 2026-10-18 --top 10
    edgestats show --day 2026-10-18

The backend is chosen by STORE_BACKEND (memory, redis, cloudflare).
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, Optional, Sequence

from .core.clock import parse_day_key
from .core.config import get_settings
from .core.errors import InvalidSample
from .percentiles.engine import coerce_rtt
from .store.histogram_store import HistogramStore

logger = logging.getLogger("edgestats.cli")


def _positive_int(value: str) -> int:
    """argparse type for counts that must be at least 1."""
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid int value: {value!r}")
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False))


async def _run(args: argparse.Namespace, action) -> int:
    store = HistogramStore.from_settings(get_settings())
    try:
        day = args.day or store.today()
        return await action(store, day)
    finally:
        await store.close()


def cmd_record(args: argparse.Namespace) -> int:
    """Record one RTT sample."""
    try:
        coerce_rtt(args.rtt)
    except InvalidSample as e:
        logger.error("Not recording: %s", e.message)
        return 1

    async def action(store: HistogramStore, day: str) -> int:
        await store.record_sample(day, args.rtt, args.colo, args.country)
        aggregate = await store.load(day)
        logger.info("Recorded %s ms for %s on %s (%d samples)", args.rtt, args.colo or "—", day, aggregate.sample_count)
        return 0

    return asyncio.run(_run(args, action))


def cmd_rank(args: argparse.Namespace) -> int:
    """Show how an RTT ranks against a day's samples."""

    async def action(store: HistogramStore, day: str) -> int:
        result = await store.peek_rank(day, args.rtt)
        if result is None:
            logger.error("Could not rank %s ms for %s", args.rtt, day)
            return 1
        _print_json(result.model_dump(by_alias=True))
        return 0

    return asyncio.run(_run(args, action))


def cmd_leaderboard(args: argparse.Namespace) -> int:
    """Print the day's percentiles and busiest locations."""

    async def action(store: HistogramStore, day: str) -> int:
        summary = await store.leaderboard(day, args.top)
        _print_json(summary.model_dump(by_alias=True))
        return 0

    return asyncio.run(_run(args, action))


def cmd_show(args: argparse.Namespace) -> int:
    """Print the stored aggregate as persisted."""

    async def action(store: HistogramStore, day: str) -> int:
        aggregate = await store.load(day)
        _print_json(aggregate.model_dump(by_alias=True, exclude_none=True))
        return 0

    return asyncio.run(_run(args, action))


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point."""
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    parser = argparse.ArgumentParser(
        description="Edge latency stats CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # record command
    record_parser = subparsers.add_parser("record", help="Record an RTT sample")
    record_parser.add_argument("--rtt", type=float, required=True, help="Round-trip time in ms")
    record_parser.add_argument("--colo", help="Serving location id (default: unknown)")
    record_parser.add_argument("--country", help="Client country code")
    record_parser.add_argument("--day", help="UTC day YYYY-MM-DD (default: today)")

    # rank command
    rank_parser = subparsers.add_parser("rank", help="Rank an RTT against a day")
    rank_parser.add_argument("--rtt", type=float, required=True, help="Round-trip time in ms")
    rank_parser.add_argument("--day", help="UTC day YYYY-MM-DD (default: today)")

    # leaderboard command
    board_parser = subparsers.add_parser("leaderboard", help="Show percentiles and top locations")
    board_parser.add_argument("--day", help="UTC day YYYY-MM-DD (default: today)")
    board_parser.add_argument("--top", type=_positive_int, help="Number of locations to list")

    # show command
    show_parser = subparsers.add_parser("show", help="Show the stored aggregate")
    show_parser.add_argument("--day", help="UTC day YYYY-MM-DD (default: today)")

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    commands = {
        "record": cmd_record,
        "rank": cmd_rank,
        "leaderboard": cmd_leaderboard,
        "show": cmd_show,
    }

    if args.day:
        try:
            args.day = parse_day_key(args.day)
        except ValueError as e:
            logger.error("%s", e)
            return 2

    return commands[args.command](args)


if __name__ == "__main__":
    sys.exit(main())

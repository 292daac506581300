from __future__ import annotations

import argparse
import json
import os
import sys
from datetime import date
from pathlib import Path
from typing import List, Optional

from advent.calendar import DEFAULT_TIMEZONE, AdventCalendar, today_in
from advent.check_in import CheckIn
from advent.content import AdventContent, load_advent_content
from advent.errors import AdventConfigurationError
from advent.file_store import JsonFileStore
from advent.prompt import Prompt
from advent.records import coerce_date
from advent.reward import validate_pool
from advent.store import MemoryStore, Store


def validate_content(content: AdventContent) -> List[str]:
    """Return human-readable problems with authored content; empty means it is usable."""
    problems: List[str] = []
    try:
        validate_pool(content.voucher_options)
    except AdventConfigurationError as exc:
        problems.append(f"voucher_options: {exc}")

    probe = MemoryStore(prompts=content.prompts)
    for key in sorted(content.prompts):
        day = coerce_date(key)
        try:
            prompt = Prompt(day, probe)
            prompt.puzzle_format()
        except AdventConfigurationError as exc:
            problems.append(f"{key}: {exc}")
            continue
        if not prompt.part1_prompts():
            problems.append(f"{key}: no part1 lines")
    return problems


def command_summary(store: Store, day: date) -> None:
    state = AdventCalendar(day, store).state()
    print("== Advent Calendar Summary ==")
    print(f"Day: {state['day']} | Stage: {state['stage']} | Days left: {state['days_left']}")
    print(f"Stars: {state['total_stars']} | Check-ins: {state['total_check_ins']}")
    print(
        f"Draws: {state['draws_available']} available "
        f"({state['draws_unlocked']} unlocked, {state['draws_claimed']} claimed)"
    )
    if state["next_milestone"] is not None:
        print(f"Next milestone: {state['next_milestone']} ({state['stars_until_next_milestone']} to go)")
    for voucher in state["vouchers"]:
        flag = "redeemed" if voucher["redeemed"] else ("ready" if voucher["redeemable"] else "locked")
        print(f"  - {voucher['id']} {voucher['title']} [{flag}]")


def command_vouchers(store: Store, day: date) -> None:
    print(json.dumps(AdventCalendar(day, store).vouchers(), indent=2, ensure_ascii=False))


def command_reset_day(store: Store, day: date) -> None:
    flow = CheckIn(day, store)
    before = flow.current_stage()
    flow.reset_part1()
    print(f"{day.isoformat()}: {before.value} -> {flow.current_stage().value}")


COMMANDS = {
    "summary": command_summary,
    "vouchers": command_vouchers,
    "reset-day": command_reset_day,
}


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Inspect and maintain the Advent calendar data.")
    parser.add_argument("command", choices=["summary", "vouchers", "validate", "reset-day"], help="Command to run")
    parser.add_argument("day", nargs="?", help="ISO date (defaults to today in --timezone)")
    parser.add_argument(
        "--backend",
        choices=["file", "sql", "supabase"],
        default="file",
        help="Store to open; sql/supabase use the same settings as the web app",
    )
    parser.add_argument(
        "--data",
        default=Path("data") / "advent.json",
        type=Path,
        help="Path to the JSON file store (file backend)",
    )
    parser.add_argument(
        "--timezone",
        default=os.environ.get("ADVENT_TIMEZONE") or DEFAULT_TIMEZONE,
        help="Zone that decides which day is today",
    )
    parser.add_argument("--content", type=Path, help="Path to the authored content JSON (validate only)")
    args = parser.parse_args(argv)

    day = today_in(args.timezone)
    if args.day:
        day = coerce_date(args.day)
        if day is None:
            parser.error(f"Not an ISO date: {args.day}")

    if args.command == "validate":
        try:
            content = load_advent_content(force_refresh=True, path=args.content)
        except (FileNotFoundError, AdventConfigurationError) as exc:
            print(f"Content unavailable: {exc}")
            return 1
        problems = validate_content(content)
        for problem in problems:
            print(f"- {problem}")
        print("Content OK" if not problems else f"{len(problems)} problem(s) found")
        return 1 if problems else 0

    command = COMMANDS[args.command]
    if args.backend == "file":
        command(JsonFileStore(args.data, content_loader=load_advent_content), day)
        return 0

    from app import create_app

    app = create_app({"ADVENT_STORE_BACKEND": args.backend})
    with app.app_context():
        command(app.config["ADVENT_STORE"], day)
    return 0


if __name__ == "__main__":
    sys.exit(main())

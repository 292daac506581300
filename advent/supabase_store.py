"""Supabase-backed Advent store (remote tables, authored content from the JSON config)."""

from __future__ import annotations

from datetime import date
from typing import Any, Callable, Dict, List, Optional

from advent.content import AdventContent, load_advent_content
from advent.errors import StaleWriteError, StoreError
from advent.records import (
    DayRecord,
    GuestMessage,
    PuzzleAttempt,
    VoucherOption,
    VoucherRecord,
    coerce_stars,
    next_voucher_id,
)
from advent.store import Store, check_voucher_limit, get_logger

DAYS_TABLE = "advent_calendar_days"
VOUCHERS_TABLE = "advent_vouchers"
ATTEMPTS_TABLE = "advent_puzzle_attempts"
MESSAGES_TABLE = "advent_messages"


class SupabaseStore(Store):
    def __init__(self, client, content_loader: Callable[[], AdventContent] = load_advent_content):
        self._client = client
        self._content_loader = content_loader

    # ---- days ----

    def fetch_day(self, day: date) -> Optional[DayRecord]:
        rows = self._execute(
            self._client.table(DAYS_TABLE).select("*").eq("day", day.isoformat()).limit(1),
            "fetching advent day",
        )
        return DayRecord.from_dict(rows[0]) if rows else None

    def write_day(self, day, stars, puzzle_answer=None, *, expected_stars=None):
        payload = {"day": day.isoformat(), "stars": coerce_stars(stars), "puzzle_answer": puzzle_answer}

        if expected_stars is None:
            self._execute(
                self._client.table(DAYS_TABLE).upsert(payload, on_conflict="day"),
                "upserting advent day",
            )
        elif self.fetch_day(day) is None:
            if expected_stars != 0:
                raise StaleWriteError(f"Day {day.isoformat()} disappeared before the guarded write")
            self._execute(self._client.table(DAYS_TABLE).insert(payload), "inserting advent day")
        else:
            rows = self._execute(
                self._client.table(DAYS_TABLE)
                .update({"stars": payload["stars"], "puzzle_answer": puzzle_answer})
                .eq("day", payload["day"])
                .eq("stars", expected_stars),
                "updating advent day",
            )
            if not rows:
                raise StaleWriteError(
                    f"Day {day.isoformat()} changed underneath us (expected {expected_stars} stars)"
                )

        return DayRecord(day=day, stars=payload["stars"], puzzle_answer=puzzle_answer)

    def all_days(self) -> List[DayRecord]:
        rows = self._execute(
            self._client.table(DAYS_TABLE).select("*").order("day", desc=False),
            "fetching advent days",
        )
        return [DayRecord.from_dict(row) for row in rows]

    # ---- vouchers ----

    def append_voucher(self, title, details, awarded_at, redeemable_at=None, *, max_vouchers=None):
        rows = self._execute(self._client.table(VOUCHERS_TABLE).select("id"), "counting vouchers")
        check_voucher_limit(len(rows), max_vouchers)

        record = VoucherRecord(
            id=next_voucher_id(row.get("id") for row in rows),
            title=str(title),
            details=str(details),
            awarded_at=awarded_at,
            redeemable_at=redeemable_at,
        )
        # the id is the primary key, so a concurrent draw that picked the same id conflicts
        self._execute(self._client.table(VOUCHERS_TABLE).insert(record.to_dict()), "inserting voucher")
        return record

    def update_voucher(self, voucher_id, redeemed_at):
        if self.find_voucher(voucher_id) is None:
            return None

        rows = self._execute(
            self._client.table(VOUCHERS_TABLE)
            .update({"redeemed_at": redeemed_at.isoformat()})
            .eq("id", voucher_id)
            .is_("redeemed_at", "null"),
            "redeeming voucher",
        )
        if not rows:
            raise StaleWriteError(f"{voucher_id} was already redeemed")
        return VoucherRecord.from_dict(rows[0])

    def all_vouchers(self) -> List[VoucherRecord]:
        rows = self._execute(
            self._client.table(VOUCHERS_TABLE).select("*").order("id", desc=False),
            "fetching vouchers",
        )
        return [VoucherRecord.from_dict(row) for row in rows]

    def find_voucher(self, voucher_id: str) -> Optional[VoucherRecord]:
        rows = self._execute(
            self._client.table(VOUCHERS_TABLE).select("*").eq("id", voucher_id).limit(1),
            "fetching voucher",
        )
        return VoucherRecord.from_dict(rows[0]) if rows else None

    # ---- authored content ----

    def voucher_options(self) -> List[VoucherOption]:
        return list(self._content_loader().voucher_options)

    def prompt_for(self, day: date) -> Optional[Dict[str, str]]:
        return self._content_loader().prompt_for(day)

    # ---- logs ----

    def append_puzzle_attempt(self, day, attempt, timestamp):
        entry = PuzzleAttempt(day=day, attempt=str(attempt), timestamp=timestamp)
        self._execute(
            self._client.table(ATTEMPTS_TABLE).insert(entry.to_dict(), returning="minimal"),
            "logging puzzle attempt",
        )
        return entry

    def puzzle_attempts(self) -> List[PuzzleAttempt]:
        rows = self._execute(
            self._client.table(ATTEMPTS_TABLE).select("*").order("timestamp", desc=False),
            "fetching puzzle attempts",
        )
        return [PuzzleAttempt.from_dict(row) for row in rows]

    def append_message(self, timestamp, message):
        entry = GuestMessage(timestamp=timestamp, message=str(message))
        self._execute(
            self._client.table(MESSAGES_TABLE).insert(entry.to_dict(), returning="minimal"),
            "recording guest message",
        )
        return entry

    def messages(self) -> List[GuestMessage]:
        rows = self._execute(
            self._client.table(MESSAGES_TABLE).select("*").order("timestamp", desc=False),
            "fetching guest messages",
        )
        return [GuestMessage.from_dict(row) for row in rows]

    @staticmethod
    def _execute(query, action: str) -> List[Dict[str, Any]]:
        try:
            resp = query.execute()
        except Exception as exc:
            if _is_supabase_conflict(exc):
                raise StaleWriteError(f"Conflict while {action}") from exc
            _log_supabase_warning(action, exc)
            raise StoreError(f"Supabase error while {action}") from exc
        return getattr(resp, "data", None) or []


def _is_supabase_conflict(exc: Exception) -> bool:
    message = str(exc).lower()
    return "duplicate key value" in message or "unique constraint" in message


def _log_supabase_warning(action: str, exc: Exception) -> None:
    get_logger().warning("Advent Supabase error while %s: %s", action, exc)

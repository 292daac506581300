"""Storage contract for the Advent engine plus the in-memory reference backend."""

from __future__ import annotations

import abc
import logging
import threading
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional

from flask import current_app, has_app_context

from advent.errors import StaleWriteError
from advent.records import (
    DayRecord,
    GuestMessage,
    PuzzleAttempt,
    VoucherOption,
    VoucherRecord,
    coerce_stars,
    next_voucher_id,
)

BACKENDS = ("memory", "file", "sql", "supabase")

_module_logger = logging.getLogger("advent")


def get_logger() -> logging.Logger:
    """Use the Flask app logger inside a request/app context, the package logger otherwise."""
    if has_app_context():
        logger = getattr(current_app, "logger", None)
        if logger:
            return logger
    return _module_logger


def check_expected_stars(day: date, current: Optional[DayRecord], expected_stars: Optional[int]) -> None:
    """Raise StaleWriteError when a guarded day write no longer matches what the caller read."""
    if expected_stars is None:
        return
    stored = current.stars if current else 0
    if stored != expected_stars:
        raise StaleWriteError(
            f"Day {day.isoformat()} changed underneath us (expected {expected_stars} stars, found {stored})"
        )


def check_voucher_limit(count: int, max_vouchers: Optional[int]) -> None:
    if max_vouchers is not None and count >= max_vouchers:
        raise StaleWriteError(f"Voucher limit reached ({count}/{max_vouchers})")


class Store(abc.ABC):
    """Everything CheckIn, Reward and Prompt need from persistence.

    A write followed by a read, even through a fresh instance, must observe the write.
    Retries and timeouts belong to the concrete backend.
    """

    @abc.abstractmethod
    def fetch_day(self, day: date) -> Optional[DayRecord]:
        ...

    @abc.abstractmethod
    def write_day(
        self,
        day: date,
        stars: int,
        puzzle_answer: Optional[str] = None,
        *,
        expected_stars: Optional[int] = None,
    ) -> DayRecord:
        """Upsert the full record. With ``expected_stars`` the write is a compare-and-swap."""

    @abc.abstractmethod
    def all_days(self) -> List[DayRecord]:
        ...

    @abc.abstractmethod
    def append_voucher(
        self,
        title: str,
        details: str,
        awarded_at: datetime,
        redeemable_at: Optional[date] = None,
        *,
        max_vouchers: Optional[int] = None,
    ) -> VoucherRecord:
        """Append with the next sequential id; refuse once ``max_vouchers`` exist."""

    @abc.abstractmethod
    def update_voucher(self, voucher_id: str, redeemed_at: datetime) -> Optional[VoucherRecord]:
        """Stamp ``redeemed_at`` once; None for unknown ids, StaleWriteError if already set."""

    @abc.abstractmethod
    def all_vouchers(self) -> List[VoucherRecord]:
        ...

    def find_voucher(self, voucher_id: str) -> Optional[VoucherRecord]:
        for voucher in self.all_vouchers():
            if voucher.id == voucher_id:
                return voucher
        return None

    @abc.abstractmethod
    def voucher_options(self) -> List[VoucherOption]:
        ...

    @abc.abstractmethod
    def prompt_for(self, day: date) -> Optional[Dict[str, str]]:
        ...

    @abc.abstractmethod
    def append_puzzle_attempt(self, day: date, attempt: str, timestamp: datetime) -> PuzzleAttempt:
        ...

    @abc.abstractmethod
    def puzzle_attempts(self) -> List[PuzzleAttempt]:
        ...

    @abc.abstractmethod
    def append_message(self, timestamp: datetime, message: str) -> GuestMessage:
        ...

    @abc.abstractmethod
    def messages(self) -> List[GuestMessage]:
        ...


class MemoryStore(Store):
    """Process-local store used by tests and the ``memory`` backend."""

    def __init__(
        self,
        voucher_options: Optional[Iterable[VoucherOption]] = None,
        prompts: Optional[Dict[str, Dict[str, str]]] = None,
    ):
        self._lock = threading.Lock()
        self._days: Dict[date, DayRecord] = {}
        self._vouchers: List[VoucherRecord] = []
        self._options: List[VoucherOption] = list(voucher_options or [])
        self._prompts: Dict[str, Dict[str, str]] = {key: dict(value) for key, value in (prompts or {}).items()}
        self._attempts: List[PuzzleAttempt] = []
        self._messages: List[GuestMessage] = []

    def reset(
        self,
        calendar_days: Optional[Iterable[DayRecord]] = None,
        vouchers: Optional[Iterable[VoucherRecord]] = None,
    ) -> None:
        """Test/operator tooling: replace all day and voucher state."""
        with self._lock:
            self._days = {record.day: record for record in calendar_days or []}
            self._vouchers = list(vouchers or [])
            self._attempts = []
            self._messages = []

    def fetch_day(self, day: date) -> Optional[DayRecord]:
        return self._days.get(day)

    def write_day(self, day, stars, puzzle_answer=None, *, expected_stars=None):
        with self._lock:
            check_expected_stars(day, self._days.get(day), expected_stars)
            record = DayRecord(day=day, stars=coerce_stars(stars), puzzle_answer=puzzle_answer)
            self._days[day] = record
            return record

    def all_days(self) -> List[DayRecord]:
        return [self._days[key] for key in sorted(self._days)]

    def append_voucher(self, title, details, awarded_at, redeemable_at=None, *, max_vouchers=None):
        with self._lock:
            check_voucher_limit(len(self._vouchers), max_vouchers)
            record = VoucherRecord(
                id=next_voucher_id(voucher.id for voucher in self._vouchers),
                title=str(title),
                details=str(details),
                awarded_at=awarded_at,
                redeemable_at=redeemable_at,
            )
            self._vouchers.append(record)
            return record

    def update_voucher(self, voucher_id, redeemed_at):
        with self._lock:
            for index, voucher in enumerate(self._vouchers):
                if voucher.id != voucher_id:
                    continue
                if voucher.redeemed:
                    raise StaleWriteError(f"{voucher_id} was already redeemed")
                updated = VoucherRecord(
                    id=voucher.id,
                    title=voucher.title,
                    details=voucher.details,
                    awarded_at=voucher.awarded_at,
                    redeemable_at=voucher.redeemable_at,
                    redeemed_at=redeemed_at,
                )
                self._vouchers[index] = updated
                return updated
        return None

    def all_vouchers(self) -> List[VoucherRecord]:
        return list(self._vouchers)

    def voucher_options(self) -> List[VoucherOption]:
        return list(self._options)

    def prompt_for(self, day: date) -> Optional[Dict[str, str]]:
        payload = self._prompts.get(day.isoformat())
        return dict(payload) if payload is not None else None

    def append_puzzle_attempt(self, day, attempt, timestamp):
        entry = PuzzleAttempt(day=day, attempt=str(attempt), timestamp=timestamp)
        with self._lock:
            self._attempts.append(entry)
        return entry

    def puzzle_attempts(self) -> List[PuzzleAttempt]:
        return list(self._attempts)

    def append_message(self, timestamp, message):
        entry = GuestMessage(timestamp=timestamp, message=str(message))
        with self._lock:
            self._messages.append(entry)
        return entry

    def messages(self) -> List[GuestMessage]:
        return list(self._messages)


def build_store(app) -> Store:
    """Select the configured backend once at startup (``ADVENT_STORE_BACKEND``)."""
    backend = str(app.config.get("ADVENT_STORE_BACKEND") or "sql").strip().lower()
    if backend not in BACKENDS:
        raise ValueError(f"Unknown ADVENT_STORE_BACKEND {backend!r}; expected one of {', '.join(BACKENDS)}")

    if backend == "memory":
        from advent.content import load_advent_content

        with app.app_context():
            content = load_advent_content()
        store: Store = MemoryStore(voucher_options=content.voucher_options, prompts=content.prompts)
    elif backend == "file":
        from advent.content import load_advent_content
        from advent.file_store import JsonFileStore

        store = JsonFileStore(app.config["ADVENT_DATA_PATH"], content_loader=load_advent_content)
    elif backend == "sql":
        from advent.sql_store import SqlStore

        store = SqlStore()
    else:
        from advent.supabase_store import SupabaseStore

        client = app.config.get("SUPABASE_CLIENT")
        if not client:
            raise ValueError("ADVENT_STORE_BACKEND=supabase needs SUPABASE_URL and SUPABASE_KEY")
        store = SupabaseStore(client)

    app.logger.info("Advent store backend: %s", backend)
    return store

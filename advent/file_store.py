"""Flat JSON file backend for the Advent store."""

from __future__ import annotations

import json
import os
import tempfile
import threading
from contextlib import contextmanager
from datetime import date
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional

from advent.content import AdventContent
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
from advent.store import Store, check_expected_stars, check_voucher_limit, get_logger

DEFAULT_PAYLOAD: Dict[str, Any] = {
    "calendar_days": {},
    "vouchers": [],
    "voucher_options": [],
    "prompts": {},
    "puzzle_attempts": [],
    "messages": [],
}

# one lock per file so two stores pointed at the same path in this process serialise
_PATH_LOCKS: Dict[str, threading.RLock] = {}
_PATH_LOCKS_GUARD = threading.Lock()


def _lock_for(path: Path) -> threading.RLock:
    key = str(path.resolve())
    with _PATH_LOCKS_GUARD:
        return _PATH_LOCKS.setdefault(key, threading.RLock())


class JsonFileStore(Store):
    """Keeps every collection in one JSON document, rewritten atomically on each change.

    With a ``content_loader`` the prompts and voucher catalog come from the authored
    content file instead of the document's own ``prompts``/``voucher_options`` keys.
    """

    def __init__(
        self,
        path,
        seed: Optional[Dict[str, Any]] = None,
        content_loader: Optional[Callable[[], AdventContent]] = None,
    ):
        self.path = Path(path)
        self._lock = _lock_for(self.path)
        self._content_loader = content_loader
        self._ensure_file(seed)

    # ---- test/operator tooling ----

    def reset(
        self,
        calendar_days: Optional[Iterable[DayRecord]] = None,
        vouchers: Optional[Iterable[VoucherRecord]] = None,
    ) -> None:
        with self._modify() as data:
            data["calendar_days"] = {
                record.day.isoformat(): {"stars": record.stars, "puzzle_answer": record.puzzle_answer}
                for record in calendar_days or []
            }
            data["vouchers"] = [voucher.to_dict() for voucher in vouchers or []]
            data["puzzle_attempts"] = []
            data["messages"] = []

    # ---- days ----

    def fetch_day(self, day: date) -> Optional[DayRecord]:
        return self._day_from(self._read(), day)

    def write_day(self, day, stars, puzzle_answer=None, *, expected_stars=None):
        with self._modify() as data:
            check_expected_stars(day, self._day_from(data, day), expected_stars)
            data["calendar_days"][day.isoformat()] = {
                "stars": coerce_stars(stars),
                "puzzle_answer": puzzle_answer,
            }
        return DayRecord(day=day, stars=coerce_stars(stars), puzzle_answer=puzzle_answer)

    def all_days(self) -> List[DayRecord]:
        data = self._read()
        records = []
        for key, attrs in data["calendar_days"].items():
            try:
                records.append(DayRecord.from_dict({"day": key, **(attrs or {})}))
            except ValueError:
                get_logger().warning("Skipping malformed advent day %r in %s", key, self.path)
        return sorted(records, key=lambda record: record.day)

    # ---- vouchers ----

    def append_voucher(self, title, details, awarded_at, redeemable_at=None, *, max_vouchers=None):
        with self._modify() as data:
            check_voucher_limit(len(data["vouchers"]), max_vouchers)
            record = VoucherRecord(
                id=next_voucher_id(entry.get("id") for entry in data["vouchers"]),
                title=str(title),
                details=str(details),
                awarded_at=awarded_at,
                redeemable_at=redeemable_at,
            )
            data["vouchers"].append(record.to_dict())
        return record

    def update_voucher(self, voucher_id, redeemed_at):
        record = None
        with self._modify() as data:
            for entry in data["vouchers"]:
                if entry.get("id") != voucher_id:
                    continue
                if entry.get("redeemed_at"):
                    raise StaleWriteError(f"{voucher_id} was already redeemed")
                entry["redeemed_at"] = redeemed_at.isoformat()
                record = VoucherRecord.from_dict(entry)
                break
        return record

    def all_vouchers(self) -> List[VoucherRecord]:
        return [VoucherRecord.from_dict(entry) for entry in self._read()["vouchers"]]

    def voucher_options(self) -> List[VoucherOption]:
        if self._content_loader:
            return list(self._content_loader().voucher_options)
        return [VoucherOption.from_dict(entry) for entry in self._read()["voucher_options"]]

    def prompt_for(self, day: date) -> Optional[Dict[str, str]]:
        if self._content_loader:
            return self._content_loader().prompt_for(day)
        payload = self._read()["prompts"].get(day.isoformat())
        if payload is None:
            return None
        return {str(key): "" if value is None else str(value) for key, value in payload.items()}

    # ---- logs ----

    def append_puzzle_attempt(self, day, attempt, timestamp):
        entry = PuzzleAttempt(day=day, attempt=str(attempt), timestamp=timestamp)
        with self._modify() as data:
            data["puzzle_attempts"].append(entry.to_dict())
        return entry

    def puzzle_attempts(self) -> List[PuzzleAttempt]:
        return [PuzzleAttempt.from_dict(entry) for entry in self._read()["puzzle_attempts"]]

    def append_message(self, timestamp, message):
        entry = GuestMessage(timestamp=timestamp, message=str(message))
        with self._modify() as data:
            data["messages"].append(entry.to_dict())
        return entry

    def messages(self) -> List[GuestMessage]:
        return [GuestMessage.from_dict(entry) for entry in self._read()["messages"]]

    # ---- file handling ----

    @staticmethod
    def _day_from(data: Dict[str, Any], day: date) -> Optional[DayRecord]:
        attrs = data["calendar_days"].get(day.isoformat())
        if attrs is None:
            return None
        return DayRecord(
            day=day,
            stars=coerce_stars(attrs.get("stars")),
            puzzle_answer=attrs.get("puzzle_answer"),
        )

    def _ensure_file(self, seed: Optional[Dict[str, Any]]) -> None:
        with self._lock:
            if self.path.exists():
                return
            self.path.parent.mkdir(parents=True, exist_ok=True)
            payload = dict(DEFAULT_PAYLOAD)
            payload.update(seed or {})
            self._write(payload)
            get_logger().info("Scaffolded advent data file at %s", self.path)

    def _read(self) -> Dict[str, Any]:
        try:
            with self.path.open("r", encoding="utf-8") as handle:
                raw = json.load(handle)
        except (OSError, json.JSONDecodeError) as exc:
            raise StoreError(f"Unable to read advent data at {self.path}: {exc}") from exc
        return self._normalize(raw if isinstance(raw, dict) else {})

    @staticmethod
    def _normalize(raw: Dict[str, Any]) -> Dict[str, Any]:
        data = {key: raw.get(key, default) for key, default in DEFAULT_PAYLOAD.items()}
        data["calendar_days"] = dict(data["calendar_days"] or {})
        for key in ("vouchers", "voucher_options", "puzzle_attempts", "messages"):
            data[key] = list(data[key] or [])
        data["prompts"] = dict(data["prompts"] or {})
        return data

    def _write(self, payload: Dict[str, Any]) -> None:
        tmp_path = None
        try:
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self.path.parent,
                prefix=f".{self.path.name}.",
                suffix=".tmp",
                delete=False,
            ) as tmp:
                json.dump(payload, tmp, indent=2, ensure_ascii=False)
                tmp_path = tmp.name
            os.replace(tmp_path, self.path)
            tmp_path = None
        except OSError as exc:
            raise StoreError(f"Unable to write advent data at {self.path}: {exc}") from exc
        finally:
            if tmp_path:
                try:
                    os.remove(tmp_path)
                except OSError:
                    pass

    @contextmanager
    def _modify(self):
        with self._lock:
            data = self._read()
            yield data
            self._write(data)

"""Plain record types exchanged with the Advent stores."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, Optional

from dateutil import parser as date_parser

VOUCHER_ID_FORMAT = "voucher-{:04d}"
_VOUCHER_ID_PATTERN = re.compile(r"voucher-(\d+)")
WILDCARD_ANSWER = "*"
MAX_STARS = 2

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_voucher_id(sequence: int) -> str:
    return VOUCHER_ID_FORMAT.format(int(sequence))


def voucher_sequence(identifier: Any) -> int:
    """Return the numeric part of a voucher id, or 0 when it has none."""
    match = _VOUCHER_ID_PATTERN.search(str(identifier or ""))
    return int(match.group(1)) if match else 0


def next_voucher_id(existing_ids) -> str:
    current_max = max((voucher_sequence(value) for value in existing_ids), default=0)
    return format_voucher_id(current_max + 1)


def normalize_voucher_id(identifier: Any) -> str:
    text = str(identifier or "").strip()
    if text.startswith("voucher-"):
        return text
    try:
        return format_voucher_id(int(text))
    except ValueError:
        return text


def coerce_date(value: Any) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date_parser.isoparse(str(value).strip()).date()
    except (TypeError, ValueError, OverflowError):
        return None


def coerce_datetime(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        try:
            dt = date_parser.isoparse(str(value).strip())
        except (TypeError, ValueError, OverflowError):
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def coerce_stars(value: Any) -> int:
    try:
        stars = int(value or 0)
    except (TypeError, ValueError):
        return 0
    return max(0, min(stars, MAX_STARS))


def _isoformat_or_none(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value is not None else None


@dataclass(frozen=True)
class DayRecord:
    """One calendar date and how far the player got on it."""

    day: date
    stars: int = 0
    puzzle_answer: Optional[str] = None

    @property
    def part1_completed(self) -> bool:
        return self.stars > 0

    @property
    def part2_completed(self) -> bool:
        return self.stars >= 2

    def to_dict(self) -> Dict[str, Any]:
        return {
            "day": self.day.isoformat(),
            "stars": self.stars,
            "puzzle_answer": self.puzzle_answer,
        }

    @classmethod
    def from_dict(cls, row: Dict[str, Any]) -> "DayRecord":
        day = coerce_date(row.get("day"))
        if day is None:
            raise ValueError(f"Day record without a valid day: {row!r}")
        answer = row.get("puzzle_answer")
        return cls(
            day=day,
            stars=coerce_stars(row.get("stars")),
            puzzle_answer=None if answer is None else str(answer),
        )


@dataclass(frozen=True)
class VoucherOption:
    """Catalog entry; ``chance`` is a percentage weight inside one draw pool."""

    title: str
    details: str = ""
    chance: int = 0
    redeemable_at: Optional[date] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "details": self.details,
            "chance": self.chance,
            "redeemable_at": _isoformat_or_none(self.redeemable_at),
        }

    @classmethod
    def from_dict(cls, row: Dict[str, Any]) -> "VoucherOption":
        try:
            chance = int(row.get("chance") or 0)
        except (TypeError, ValueError):
            chance = 0
        return cls(
            title=str(row.get("title") or ""),
            details=str(row.get("details") or ""),
            chance=chance,
            redeemable_at=coerce_date(row.get("redeemable_at")),
        )


@dataclass(frozen=True)
class VoucherRecord:
    """An awarded voucher. Only ``redeemed_at`` ever changes, and only once."""

    id: str
    title: str
    details: str
    awarded_at: datetime
    redeemable_at: Optional[date] = None
    redeemed_at: Optional[datetime] = None

    @property
    def redeemed(self) -> bool:
        return self.redeemed_at is not None

    def redeemable(self, today: date) -> bool:
        return self.redeemable_at is None or self.redeemable_at <= today

    def to_dict(self, today: Optional[date] = None) -> Dict[str, Any]:
        payload = {
            "id": self.id,
            "title": self.title,
            "details": self.details,
            "awarded_at": self.awarded_at.isoformat(),
            "redeemable_at": _isoformat_or_none(self.redeemable_at),
            "redeemed_at": _isoformat_or_none(self.redeemed_at),
        }
        if today is not None:
            payload["redeemed"] = self.redeemed
            payload["redeemable"] = self.redeemable(today)
        return payload

    @classmethod
    def from_dict(cls, row: Dict[str, Any]) -> "VoucherRecord":
        awarded_at = coerce_datetime(row.get("awarded_at")) or datetime.fromtimestamp(0, tz=timezone.utc)
        return cls(
            id=normalize_voucher_id(row.get("id")),
            title=str(row.get("title") or ""),
            details=str(row.get("details") or ""),
            awarded_at=awarded_at,
            redeemable_at=coerce_date(row.get("redeemable_at")),
            redeemed_at=coerce_datetime(row.get("redeemed_at")),
        )


@dataclass(frozen=True)
class PuzzleAttempt:
    day: date
    attempt: str
    timestamp: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "day": self.day.isoformat(),
            "attempt": self.attempt,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, row: Dict[str, Any]) -> "PuzzleAttempt":
        return cls(
            day=coerce_date(row.get("day")) or date.min,
            attempt=str(row.get("attempt") or ""),
            timestamp=coerce_datetime(row.get("timestamp")) or datetime.fromtimestamp(0, tz=timezone.utc),
        )


@dataclass(frozen=True)
class GuestMessage:
    timestamp: datetime
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {"timestamp": self.timestamp.isoformat(), "message": self.message}

    @classmethod
    def from_dict(cls, row: Dict[str, Any]) -> "GuestMessage":
        return cls(
            timestamp=coerce_datetime(row.get("timestamp")) or datetime.fromtimestamp(0, tz=timezone.utc),
            message=str(row.get("message") or ""),
        )

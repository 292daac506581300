"""Relational Advent store on Flask-SQLAlchemy (needs an app context)."""

from __future__ import annotations

from datetime import date
from typing import Callable, Dict, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from extensions import db
from advent.content import AdventContent, load_advent_content
from advent.errors import StaleWriteError, StoreError
from advent.models import CalendarDay, GuestMessageRow, PuzzleAttemptRow, Voucher
from advent.records import (
    DayRecord,
    GuestMessage,
    PuzzleAttempt,
    VoucherOption,
    VoucherRecord,
    coerce_datetime,
    coerce_stars,
    next_voucher_id,
)
from advent.store import Store, check_voucher_limit, get_logger


class SqlStore(Store):
    """Day/voucher state in SQL tables; prompts and the catalog come from authored content."""

    def __init__(self, content_loader: Callable[[], AdventContent] = load_advent_content):
        self._content_loader = content_loader

    # ---- days ----

    def fetch_day(self, day: date) -> Optional[DayRecord]:
        row = CalendarDay.query.filter_by(day=day).first()
        return _day_from_row(row) if row else None

    def write_day(self, day, stars, puzzle_answer=None, *, expected_stars=None):
        stars = coerce_stars(stars)
        values = {"stars": stars, "puzzle_answer": puzzle_answer}
        existing = CalendarDay.query.filter_by(day=day).first()

        if existing is None:
            if expected_stars not in (None, 0):
                raise StaleWriteError(f"Day {day.isoformat()} disappeared before the guarded write")
            db.session.add(CalendarDay(day=day, **values))
        elif expected_stars is None:
            existing.stars = stars
            existing.puzzle_answer = puzzle_answer
        else:
            updated = (
                CalendarDay.query.filter_by(day=day, stars=expected_stars)
                .update(values, synchronize_session=False)
            )
            if not updated:
                db.session.rollback()
                raise StaleWriteError(
                    f"Day {day.isoformat()} changed underneath us (expected {expected_stars} stars)"
                )

        self._commit(f"writing advent day {day.isoformat()}")
        return DayRecord(day=day, stars=stars, puzzle_answer=puzzle_answer)

    def all_days(self) -> List[DayRecord]:
        rows = CalendarDay.query.order_by(CalendarDay.day.asc()).all()
        return [_day_from_row(row) for row in rows]

    # ---- vouchers ----

    def append_voucher(self, title, details, awarded_at, redeemable_at=None, *, max_vouchers=None):
        codes = [code for (code,) in db.session.query(Voucher.code).all()]
        check_voucher_limit(len(codes), max_vouchers)

        row = Voucher(
            code=next_voucher_id(codes),
            title=str(title),
            details=str(details),
            awarded_at=awarded_at,
            redeemable_at=redeemable_at,
        )
        db.session.add(row)
        self._commit(f"appending voucher {row.code}")
        return _voucher_from_row(row)

    def update_voucher(self, voucher_id, redeemed_at):
        if not Voucher.query.filter_by(code=voucher_id).first():
            return None

        updated = (
            Voucher.query.filter(Voucher.code == voucher_id, Voucher.redeemed_at.is_(None))
            .update({"redeemed_at": redeemed_at}, synchronize_session=False)
        )
        if not updated:
            db.session.rollback()
            raise StaleWriteError(f"{voucher_id} was already redeemed")
        self._commit(f"redeeming {voucher_id}")

        return _voucher_from_row(Voucher.query.filter_by(code=voucher_id).first())

    def all_vouchers(self) -> List[VoucherRecord]:
        return [_voucher_from_row(row) for row in Voucher.query.order_by(Voucher.id.asc()).all()]

    def find_voucher(self, voucher_id: str) -> Optional[VoucherRecord]:
        row = Voucher.query.filter_by(code=voucher_id).first()
        return _voucher_from_row(row) if row else None

    # ---- authored content ----

    def voucher_options(self) -> List[VoucherOption]:
        return list(self._content_loader().voucher_options)

    def prompt_for(self, day: date) -> Optional[Dict[str, str]]:
        return self._content_loader().prompt_for(day)

    # ---- logs ----

    def append_puzzle_attempt(self, day, attempt, timestamp):
        db.session.add(PuzzleAttemptRow(day=day, attempt=str(attempt), timestamp=timestamp))
        self._commit(f"logging puzzle attempt for {day.isoformat()}")
        return PuzzleAttempt(day=day, attempt=str(attempt), timestamp=timestamp)

    def puzzle_attempts(self) -> List[PuzzleAttempt]:
        rows = PuzzleAttemptRow.query.order_by(PuzzleAttemptRow.id.asc()).all()
        return [
            PuzzleAttempt(day=row.day, attempt=row.attempt, timestamp=coerce_datetime(row.timestamp))
            for row in rows
        ]

    def append_message(self, timestamp, message):
        db.session.add(GuestMessageRow(message=str(message), timestamp=timestamp))
        self._commit("recording guest message")
        return GuestMessage(timestamp=timestamp, message=str(message))

    def messages(self) -> List[GuestMessage]:
        rows = GuestMessageRow.query.order_by(GuestMessageRow.id.asc()).all()
        return [GuestMessage(timestamp=coerce_datetime(row.timestamp), message=row.message) for row in rows]

    @staticmethod
    def _commit(action: str) -> None:
        try:
            db.session.commit()
        except IntegrityError as exc:
            db.session.rollback()
            raise StaleWriteError(f"Conflict while {action}") from exc
        except SQLAlchemyError as exc:
            db.session.rollback()
            get_logger().warning("Advent SQL error while %s: %s", action, exc)
            raise StoreError(f"Database error while {action}") from exc


def _day_from_row(row: CalendarDay) -> DayRecord:
    return DayRecord(day=row.day, stars=coerce_stars(row.stars), puzzle_answer=row.puzzle_answer)


def _voucher_from_row(row: Voucher) -> VoucherRecord:
    return VoucherRecord(
        id=row.code,
        title=row.title,
        details=row.details or "",
        awarded_at=coerce_datetime(row.awarded_at),
        redeemable_at=row.redeemable_at,
        redeemed_at=coerce_datetime(row.redeemed_at),
    )

"""Database models backing the relational Advent store; update config/advent_2025.json for content."""

from datetime import datetime, timezone

from extensions import db


def _utcnow():
    return datetime.now(timezone.utc)


class CalendarDay(db.Model):
    """Stars earned on a single calendar date (unique per day)."""

    __tablename__ = "advent_calendar_days"

    id = db.Column(db.Integer, primary_key=True)
    day = db.Column(db.Date, nullable=False, unique=True, index=True)
    stars = db.Column(db.Integer, nullable=False, default=0)
    puzzle_answer = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)


class Voucher(db.Model):
    """An awarded voucher; ``code`` is the public ``voucher-%04d`` id."""

    __tablename__ = "advent_vouchers"

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(32), nullable=False, unique=True)
    title = db.Column(db.String(255), nullable=False)
    details = db.Column(db.Text, nullable=False, default="")
    awarded_at = db.Column(db.DateTime(timezone=True), nullable=False)
    redeemable_at = db.Column(db.Date, nullable=True)
    redeemed_at = db.Column(db.DateTime(timezone=True), nullable=True)


class PuzzleAttemptRow(db.Model):
    __tablename__ = "advent_puzzle_attempts"

    id = db.Column(db.Integer, primary_key=True)
    day = db.Column(db.Date, nullable=False, index=True)
    attempt = db.Column(db.Text, nullable=False, default="")
    timestamp = db.Column(db.DateTime(timezone=True), nullable=False)


class GuestMessageRow(db.Model):
    __tablename__ = "advent_messages"

    id = db.Column(db.Integer, primary_key=True)
    message = db.Column(db.Text, nullable=False)
    timestamp = db.Column(db.DateTime(timezone=True), nullable=False)

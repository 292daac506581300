"""Guestbook notes left alongside the calendar."""

from __future__ import annotations

from advent.errors import MessageSubmissionError, StoreError
from advent.records import Clock, GuestMessage, utcnow
from advent.store import Store, get_logger

MAX_MESSAGE_LENGTH = 2000


def submit_message(content, store: Store, clock: Clock = utcnow) -> GuestMessage:
    message = str(content or "").strip()
    if not message:
        raise MessageSubmissionError("Message is empty")
    if len(message) > MAX_MESSAGE_LENGTH:
        raise MessageSubmissionError(f"Message is longer than {MAX_MESSAGE_LENGTH} characters")

    try:
        return store.append_message(clock(), message)
    except StoreError as exc:
        get_logger().warning("Advent message not recorded: %s", exc)
        raise MessageSubmissionError("Unable to record message") from exc

"""Daily check-in progression: PART1 -> PART2 -> DONE, encoded as 0/1/2 stars."""

from __future__ import annotations

import enum
from datetime import date
from typing import Optional

from advent.content import DEFAULT_END_DATE
from advent.errors import StaleWriteError
from advent.prompt import Prompt
from advent.records import Clock, DayRecord, PuzzleAttempt, utcnow
from advent.store import Store, get_logger


class Stage(str, enum.Enum):
    PART1 = "part1"
    PART2 = "part2"
    DONE = "done"


class CheckIn:
    """State machine for one day. Every transition is read-then-guarded-write, so repeats are no-ops."""

    def __init__(
        self,
        day: date,
        store: Store,
        clock: Clock = utcnow,
        end_date: date = DEFAULT_END_DATE,
    ):
        self.day = day
        self.end_date = end_date
        self._store = store
        self._clock = clock
        self._ensure_day_entry()

    # ---- transitions ----

    def complete_part1(self) -> DayRecord:
        record = self._day_entry()
        if record.stars != 0:
            return record
        return self._write(record, 1)

    def reset_part1(self) -> DayRecord:
        record = self._day_entry()
        if record.stars == 0:
            return record
        if record.part2_completed:
            get_logger().info("Advent reset on %s also forgets the solved puzzle", self.day.isoformat())
        return self._write(record, 0)

    def complete_part2(self) -> DayRecord:
        record = self._day_entry()
        if record.stars != 1:
            return record
        return self._write(record, 2)

    def attempt_part2(self, answer, prompt: Optional[Prompt] = None) -> bool:
        """Log the attempt, then award the second star on a match. Wrong answers change nothing."""
        prompt = prompt or Prompt(self.day, self._store)
        self.record_puzzle_attempt(answer)
        if not prompt.matches(answer):
            return False
        self.complete_part2()
        return True

    def record_puzzle_attempt(self, attempt) -> PuzzleAttempt:
        return self._store.append_puzzle_attempt(self.day, str(attempt or ""), self._clock())

    # ---- queries ----

    def current_stage(self) -> Stage:
        record = self._day_entry()
        if record.part2_completed:
            return Stage.DONE
        if record.part1_completed:
            return Stage.PART2
        return Stage.PART1

    def checked_in(self) -> bool:
        return self._day_entry().part1_completed

    def puzzle_completed(self) -> bool:
        return self._day_entry().part2_completed

    def total_stars(self) -> int:
        return sum(record.stars for record in self._store.all_days())

    def total_check_ins(self) -> int:
        return sum(1 for record in self._store.all_days() if record.stars > 0)

    def days_left(self) -> int:
        return max((self.end_date - self.day).days, 0)

    # ---- helpers ----

    def _day_entry(self) -> DayRecord:
        return self._store.fetch_day(self.day) or DayRecord(day=self.day)

    def _ensure_day_entry(self) -> None:
        if self._store.fetch_day(self.day):
            return
        content = self._store.prompt_for(self.day) or {}
        answer = content.get("puzzle_answer")
        try:
            self._store.write_day(self.day, 0, answer.strip() if answer else None, expected_stars=0)
        except StaleWriteError:
            # another request created the day first
            pass

    def _write(self, record: DayRecord, stars: int) -> DayRecord:
        try:
            return self._store.write_day(
                self.day,
                stars,
                record.puzzle_answer,
                expected_stars=record.stars,
            )
        except StaleWriteError as exc:
            get_logger().info("Advent check-in for %s skipped: %s", self.day.isoformat(), exc)
            return self._day_entry()

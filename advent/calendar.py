"""Per-request facade tying CheckIn, Reward and Prompt to one day and one store."""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Dict, Iterable, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from advent.check_in import CheckIn, Stage
from advent.content import DEFAULT_END_DATE
from advent.errors import MissingPromptError
from advent.prompt import Prompt
from advent.records import Clock, VoucherRecord, utcnow
from advent.reward import VOUCHER_MILESTONES, Reward
from advent.store import Store, get_logger

DEFAULT_TIMEZONE = "Europe/London"


def today_in(tz_name: Optional[str], now: Optional[datetime] = None) -> date:
    """Calendar date in ``tz_name``; the web routes and the admin tool both use this."""
    try:
        tz = ZoneInfo(tz_name or "UTC")
    except (ZoneInfoNotFoundError, ValueError):
        get_logger().warning("Unknown ADVENT_TIMEZONE %r, falling back to UTC", tz_name)
        tz = timezone.utc
    return (now or utcnow()).astimezone(tz).date()


class AdventCalendar:
    """Cheap to build per request; holds no state beyond what it reads from the store."""

    def __init__(
        self,
        day: date,
        store: Store,
        clock: Clock = utcnow,
        milestones: Iterable[int] = VOUCHER_MILESTONES,
        end_date: date = DEFAULT_END_DATE,
    ):
        self.day = day
        self.store = store
        self.progress = CheckIn(day, store, clock=clock, end_date=end_date)
        self.reward = Reward(day, store, clock=clock, milestones=milestones)
        self._prompt: Optional[Prompt] = None

    @property
    def prompt(self) -> Prompt:
        if self._prompt is None:
            self._prompt = Prompt(self.day, self.store)
        return self._prompt

    def has_prompt(self) -> bool:
        try:
            self.prompt
        except MissingPromptError:
            return False
        return True

    # ---- progression ----

    def check_in(self) -> None:
        self.progress.complete_part1()

    def reset_check_in(self) -> bool:
        """Undo today's check-in. Returns True when a solved puzzle was forgotten too."""
        forgot_puzzle = self.progress.puzzle_completed()
        self.progress.reset_part1()
        return forgot_puzzle

    def attempt_puzzle(self, answer) -> bool:
        return self.progress.attempt_part2(answer, prompt=self.prompt)

    def checked_in(self) -> bool:
        return self.progress.checked_in()

    def puzzle_completed(self) -> bool:
        return self.progress.puzzle_completed()

    def current_stage(self) -> Stage:
        return self.progress.current_stage()

    def total_stars(self) -> int:
        return self.progress.total_stars()

    def total_check_ins(self) -> int:
        return self.progress.total_check_ins()

    def days_left(self) -> int:
        return self.progress.days_left()

    # ---- rewards ----

    def draw_voucher(self, rng=None, catalog=None) -> VoucherRecord:
        return self.reward.draw(rng=rng, catalog=catalog)

    def redeem_voucher(self, voucher_id) -> VoucherRecord:
        return self.reward.redeem(voucher_id)

    def draws_unlocked(self) -> int:
        return self.reward.draws_unlocked()

    def draws_claimed(self) -> int:
        return self.reward.draws_claimed()

    def draws_available(self) -> int:
        return self.reward.draws_available()

    def next_milestone(self) -> Optional[int]:
        return self.reward.next_milestone()

    def stars_until_next_milestone(self) -> Optional[int]:
        return self.reward.stars_until_next_milestone()

    def vouchers(self):
        return self.reward.vouchers()

    def state(self) -> Dict[str, Any]:
        """JSON-ready snapshot of everything the calendar page shows."""
        stage = self.current_stage()
        payload: Dict[str, Any] = {
            "day": self.day.isoformat(),
            "stage": stage.value,
            "checked_in": stage is not Stage.PART1,
            "puzzle_completed": stage is Stage.DONE,
            "days_left": self.days_left(),
            "total_stars": self.total_stars(),
            "total_check_ins": self.total_check_ins(),
            "draws_unlocked": self.draws_unlocked(),
            "draws_claimed": self.draws_claimed(),
            "draws_available": self.draws_available(),
            "next_milestone": self.next_milestone(),
            "stars_until_next_milestone": self.stars_until_next_milestone(),
            "voucher_milestones": list(self.reward.voucher_milestones),
            "vouchers": self.vouchers(),
            "prompt": None,
        }
        if self.has_prompt():
            payload["prompt"] = self.prompt.to_dict()
        return payload

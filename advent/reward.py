"""Milestone-gated voucher lottery with deferred redemption."""

from __future__ import annotations

import random
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from advent.errors import (
    NoEligibleDrawsError,
    StaleWriteError,
    VoucherAlreadyRedeemedError,
    VoucherCatalogError,
    VoucherNotFoundError,
    VoucherNotRedeemableError,
)
from advent.records import Clock, VoucherOption, VoucherRecord, normalize_voucher_id, utcnow
from advent.store import Store, get_logger

VOUCHER_MILESTONES = (3, 13, 23, 33, 43, 53, 63, 73, 83, 94)
TOTAL_CHANCE = 100

CatalogEntry = Union[VoucherOption, Dict[str, Any]]


def validate_pool(pool: Sequence[VoucherOption]) -> None:
    if not pool:
        raise VoucherCatalogError("Voucher catalogue is empty")
    total = sum(option.chance for option in pool)
    if total != TOTAL_CHANCE:
        raise VoucherCatalogError(f"Voucher chances must sum to {TOTAL_CHANCE} (got {total})")


def pick_weighted(pool: Sequence[VoucherOption], ticket: int) -> VoucherOption:
    """Running-sum scan: the first option whose cumulative chance exceeds ``ticket`` wins."""
    accumulator = 0
    for option in pool:
        accumulator += option.chance
        if ticket < accumulator:
            return option
    return pool[-1]


def _as_option(entry: CatalogEntry) -> VoucherOption:
    if isinstance(entry, VoucherOption):
        return entry
    return VoucherOption.from_dict(entry)


class Reward:
    def __init__(
        self,
        day: date,
        store: Store,
        clock: Clock = utcnow,
        milestones: Iterable[int] = VOUCHER_MILESTONES,
    ):
        self.day = day
        self._store = store
        self._clock = clock
        self.voucher_milestones = tuple(sorted(int(value) for value in milestones))

    # ---- milestones ----

    def total_stars(self) -> int:
        return sum(record.stars for record in self._store.all_days())

    def draws_unlocked(self) -> int:
        stars = self.total_stars()
        return sum(1 for threshold in self.voucher_milestones if threshold <= stars)

    def draws_claimed(self) -> int:
        return len(self._store.all_vouchers())

    def draws_available(self) -> int:
        return max(self.draws_unlocked() - self.draws_claimed(), 0)

    def can_draw(self) -> bool:
        return self.draws_available() > 0

    def next_milestone(self) -> Optional[int]:
        stars = self.total_stars()
        return next((threshold for threshold in self.voucher_milestones if threshold > stars), None)

    def stars_until_next_milestone(self) -> Optional[int]:
        threshold = self.next_milestone()
        if threshold is None:
            return None
        return max(threshold - self.total_stars(), 0)

    # ---- lottery ----

    def voucher_catalog(self) -> List[VoucherOption]:
        return list(self._store.voucher_options())

    def draw(self, rng: Optional[random.Random] = None, catalog: Optional[Iterable[CatalogEntry]] = None) -> VoucherRecord:
        unlocked = self.draws_unlocked()
        if unlocked - self.draws_claimed() <= 0:
            raise NoEligibleDrawsError("No draw unlocked yet")

        pool = [_as_option(entry) for entry in catalog] if catalog is not None else self.voucher_catalog()
        validate_pool(pool)

        ticket = (rng or random.Random()).randrange(TOTAL_CHANCE)
        prize = pick_weighted(pool, ticket)

        try:
            record = self._store.append_voucher(
                prize.title,
                prize.details,
                self._clock(),
                prize.redeemable_at,
                max_vouchers=unlocked,
            )
        except StaleWriteError as exc:
            raise NoEligibleDrawsError("That draw was already used") from exc

        get_logger().info("Advent voucher %s awarded: %s (ticket %s)", record.id, record.title, ticket)
        return record

    def redeem(self, voucher_id) -> VoucherRecord:
        identifier = normalize_voucher_id(voucher_id)
        voucher = self._store.find_voucher(identifier)
        if voucher is None:
            raise VoucherNotFoundError("Voucher not found")
        if voucher.redeemed:
            raise VoucherAlreadyRedeemedError("Voucher already redeemed")
        if not voucher.redeemable(self.day):
            raise VoucherNotRedeemableError(
                f"Voucher not redeemable until {voucher.redeemable_at.isoformat()}",
                payload={
                    "error": VoucherNotRedeemableError.reason,
                    "message": "Voucher not redeemable yet",
                    "redeemable_at": voucher.redeemable_at.isoformat(),
                },
            )

        try:
            updated = self._store.update_voucher(identifier, self._clock())
        except StaleWriteError as exc:
            raise VoucherAlreadyRedeemedError("Voucher already redeemed") from exc
        if updated is None:
            raise VoucherNotFoundError("Voucher not found")

        get_logger().info("Advent voucher %s redeemed", updated.id)
        return updated

    def vouchers(self) -> List[Dict[str, Any]]:
        return [voucher.to_dict(today=self.day) for voucher in self._store.all_vouchers()]

from datetime import date, timedelta

import pytest

from advent.errors import (
    NoEligibleDrawsError,
    VoucherAlreadyRedeemedError,
    VoucherCatalogError,
    VoucherNotFoundError,
    VoucherNotRedeemableError,
)
from advent.records import VoucherOption
from advent.reward import TOTAL_CHANCE, VOUCHER_MILESTONES, Reward, pick_weighted, validate_pool
from advent.store import MemoryStore

from conftest import SAMPLE_DAY, SAMPLE_NOW, ScriptedRandom, base_prompts, seed_days

SIXTY_FORTY = [
    VoucherOption(title="A", details="first", chance=60),
    VoucherOption(title="B", details="second", chance=40),
]


def unlocked_store(options=SIXTY_FORTY, stars=3):
    store = MemoryStore(voucher_options=options, prompts=base_prompts())
    seed_days(store, stars)
    return store


@pytest.mark.parametrize(
    "ticket, expected",
    [(0, "A"), (59, "A"), (60, "B"), (99, "B")],
)
def test_pick_weighted_uses_running_sum(ticket, expected):
    assert pick_weighted(SIXTY_FORTY, ticket).title == expected


def test_pick_weighted_falls_back_to_last_entry():
    assert pick_weighted(SIXTY_FORTY, 250).title == "B"


def test_validate_pool_rejects_bad_totals():
    with pytest.raises(VoucherCatalogError):
        validate_pool([])
    with pytest.raises(VoucherCatalogError) as excinfo:
        validate_pool([VoucherOption(title="A", chance=50), VoucherOption(title="B", chance=40)])
    assert "90" in str(excinfo.value)


def test_draw_awards_by_ticket(clock):
    store = unlocked_store()
    rng = ScriptedRandom(60)

    award = Reward(SAMPLE_DAY, store, clock=clock).draw(rng=rng)

    assert award.title == "B"
    assert award.details == "second"
    assert award.id == "voucher-0001"
    assert award.awarded_at == SAMPLE_NOW
    assert rng.calls == [TOTAL_CHANCE]
    assert store.all_vouchers() == [award]


def test_draw_uses_explicit_catalog(clock):
    store = unlocked_store()
    catalog = [{"title": "Only", "details": "one", "chance": 100, "redeemable_at": "2025-12-24"}]

    award = Reward(SAMPLE_DAY, store, clock=clock).draw(rng=ScriptedRandom(42), catalog=catalog)

    assert award.title == "Only"
    assert award.redeemable_at == date(2025, 12, 24)


def test_draw_with_invalid_pool_appends_nothing(clock):
    store = unlocked_store(options=[VoucherOption(title="A", chance=50), VoucherOption(title="B", chance=40)])

    with pytest.raises(VoucherCatalogError):
        Reward(SAMPLE_DAY, store, clock=clock).draw(rng=ScriptedRandom(10))

    assert store.all_vouchers() == []


def test_draw_with_empty_pool_is_a_configuration_error(clock):
    store = unlocked_store(options=[])

    with pytest.raises(VoucherCatalogError) as excinfo:
        Reward(SAMPLE_DAY, store, clock=clock).draw(rng=ScriptedRandom(10))

    assert excinfo.value.status_code == 500


def test_draw_without_unlocked_milestone(clock):
    store = unlocked_store(stars=2)

    with pytest.raises(NoEligibleDrawsError):
        Reward(SAMPLE_DAY, store, clock=clock).draw(rng=ScriptedRandom(0))

    assert store.all_vouchers() == []


def test_draws_available_drops_after_draw(clock):
    store = unlocked_store()
    reward = Reward(SAMPLE_DAY, store, clock=clock)

    assert reward.draws_unlocked() == 1
    assert reward.draws_available() == 1
    reward.draw(rng=ScriptedRandom(0))
    assert reward.draws_claimed() == 1
    assert reward.draws_available() == 0
    assert not reward.can_draw()

    with pytest.raises(NoEligibleDrawsError):
        reward.draw(rng=ScriptedRandom(0))


def test_draws_available_never_negative(clock):
    store = unlocked_store(stars=0)
    for _ in range(2):
        store.append_voucher("Legacy", "", SAMPLE_NOW)

    reward = Reward(SAMPLE_DAY, store, clock=clock)

    assert reward.draws_claimed() == 2
    assert reward.draws_available() == 0


def test_sequential_ids_across_draws(clock):
    store = unlocked_store(stars=13)
    reward = Reward(SAMPLE_DAY, store, clock=clock)

    first = reward.draw(rng=ScriptedRandom(0))
    second = reward.draw(rng=ScriptedRandom(0))

    assert [first.id, second.id] == ["voucher-0001", "voucher-0002"]


def test_next_milestone_progression():
    store = unlocked_store(stars=2)
    reward = Reward(SAMPLE_DAY, store)

    assert reward.next_milestone() == 3
    assert reward.stars_until_next_milestone() == 1

    seed_days(store, 20, stars=2)
    assert reward.total_stars() == 40
    assert reward.draws_unlocked() == 4
    assert reward.next_milestone() == 43
    assert reward.stars_until_next_milestone() == 3


def test_next_milestone_none_after_last():
    store = unlocked_store(stars=0)
    seed_days(store, 47, stars=2)
    reward = Reward(SAMPLE_DAY, store)

    assert reward.draws_unlocked() == len(VOUCHER_MILESTONES)
    assert reward.next_milestone() is None
    assert reward.stars_until_next_milestone() is None


def test_custom_milestones_are_sorted():
    reward = Reward(SAMPLE_DAY, unlocked_store(stars=2), milestones=[5, 1])

    assert reward.voucher_milestones == (1, 5)
    assert reward.draws_unlocked() == 1


def test_redeem_waits_for_redeemable_date(clock):
    tomorrow = SAMPLE_DAY + timedelta(days=1)
    store = unlocked_store(options=[VoucherOption(title="Spa", chance=100, redeemable_at=tomorrow)])
    award = Reward(SAMPLE_DAY, store, clock=clock).draw(rng=ScriptedRandom(5))

    with pytest.raises(VoucherNotRedeemableError) as excinfo:
        Reward(SAMPLE_DAY, store, clock=clock).redeem(award.id)
    assert excinfo.value.payload["redeemable_at"] == tomorrow.isoformat()

    clock.advance(days=1)
    redeemed = Reward(tomorrow, store, clock=clock).redeem(award.id)
    assert redeemed.redeemed_at == clock.now

    with pytest.raises(VoucherAlreadyRedeemedError):
        Reward(tomorrow, store, clock=clock).redeem(award.id)
    assert store.find_voucher(award.id).redeemed_at == redeemed.redeemed_at


def test_redeem_accepts_numeric_id(clock):
    store = unlocked_store(options=[VoucherOption(title="Now", chance=100)])
    Reward(SAMPLE_DAY, store, clock=clock).draw(rng=ScriptedRandom(0))

    assert Reward(SAMPLE_DAY, store, clock=clock).redeem("1").id == "voucher-0001"


def test_redeem_unknown_voucher(clock):
    with pytest.raises(VoucherNotFoundError):
        Reward(SAMPLE_DAY, unlocked_store(), clock=clock).redeem("voucher-0042")


def test_lost_redeem_race_reports_already_redeemed(clock, monkeypatch):
    store = unlocked_store(options=[VoucherOption(title="Now", chance=100)])
    award = Reward(SAMPLE_DAY, store, clock=clock).draw(rng=ScriptedRandom(0))
    original_update = store.update_voucher

    def racing_update(voucher_id, redeemed_at):
        original_update(voucher_id, redeemed_at)
        return original_update(voucher_id, redeemed_at)

    monkeypatch.setattr(store, "update_voucher", racing_update)

    with pytest.raises(VoucherAlreadyRedeemedError):
        Reward(SAMPLE_DAY, store, clock=clock).redeem(award.id)


def test_lost_draw_race_reports_no_eligible_draws(clock, monkeypatch):
    store = unlocked_store()
    original_append = store.append_voucher

    def racing_append(*args, **kwargs):
        original_append("Concurrent", "", SAMPLE_NOW)
        return original_append(*args, **kwargs)

    monkeypatch.setattr(store, "append_voucher", racing_append)

    with pytest.raises(NoEligibleDrawsError):
        Reward(SAMPLE_DAY, store, clock=clock).draw(rng=ScriptedRandom(0))

    assert len(store.all_vouchers()) == 1


def test_vouchers_report_redeemable_flags(clock):
    store = unlocked_store(
        options=[VoucherOption(title="Later", chance=100, redeemable_at=SAMPLE_DAY + timedelta(days=3))]
    )
    Reward(SAMPLE_DAY, store, clock=clock).draw(rng=ScriptedRandom(0))

    [listed] = Reward(SAMPLE_DAY, store).vouchers()

    assert listed["id"] == "voucher-0001"
    assert listed["redeemed"] is False
    assert listed["redeemable"] is False
    assert listed["redeemable_at"] == "2025-11-11"

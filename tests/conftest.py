from datetime import date, datetime, timedelta, timezone

import pytest

from app import create_app
from advent.content import AdventContent
from advent.file_store import JsonFileStore
from advent.records import DayRecord, VoucherOption
from advent.sql_store import SqlStore
from advent.store import MemoryStore
from advent.supabase_store import SupabaseStore

SAMPLE_DAY = date(2025, 11, 8)
SAMPLE_NOW = datetime(2025, 11, 8, 9, 0, tzinfo=timezone.utc)

DEFAULT_OPTIONS = [
    VoucherOption(title="Massage", details="relax", chance=100, redeemable_at=SAMPLE_DAY),
]


def prompt_payload(day, answer="ember", puzzle_format="text"):
    return {
        "part1_prompt_1": f"Greetings for {day.isoformat()}",
        "part2_prompt_1": f"Continue on {day.isoformat()}",
        "done_prompt_1": f"Done {day.isoformat()}",
        "story_1": f"Story {day.isoformat()}",
        "puzzle_format": puzzle_format,
        "puzzle_prompt": "What is the answer?",
        "puzzle_answer": answer,
    }


def base_prompts(answer="ember"):
    return {
        (SAMPLE_DAY + timedelta(days=offset)).isoformat(): prompt_payload(SAMPLE_DAY + timedelta(days=offset), answer)
        for offset in range(-5, 6)
    }


def seed_days(store, count, stars=1, before=SAMPLE_DAY):
    """Give ``count`` days before ``before`` the given stars."""
    for offset in range(1, count + 1):
        store.write_day(before - timedelta(days=offset), stars, "ember")


class ScriptedRandom:
    """Stand-in RNG that hands out prepared tickets and remembers what was asked."""

    def __init__(self, *tickets):
        self.tickets = list(tickets)
        self.calls = []

    def randrange(self, stop):
        self.calls.append(stop)
        return self.tickets.pop(0)


class FakeClock:
    def __init__(self, now=SAMPLE_NOW):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


class _FakeResponse:
    def __init__(self, data):
        self.data = data


class _FakeQuery:
    UNIQUE_KEYS = {"advent_calendar_days": "day", "advent_vouchers": "id"}

    def __init__(self, client, table):
        self._client = client
        self._table = table
        self._op = "select"
        self._payload = None
        self._on_conflict = None
        self._filters = []
        self._order = None
        self._limit = None

    def select(self, _columns="*"):
        self._op = "select"
        return self

    def insert(self, payload, returning="representation"):
        self._op, self._payload = "insert", dict(payload)
        return self

    def update(self, values):
        self._op, self._payload = "update", dict(values)
        return self

    def upsert(self, payload, on_conflict=None, returning="representation"):
        self._op, self._payload, self._on_conflict = "upsert", dict(payload), on_conflict
        return self

    def eq(self, column, value):
        self._filters.append(lambda row: row.get(column) == value)
        return self

    def is_(self, column, value):
        assert value == "null"
        self._filters.append(lambda row: row.get(column) is None)
        return self

    def order(self, column, desc=False):
        self._order = (column, desc)
        return self

    def limit(self, count):
        self._limit = count
        return self

    def execute(self):
        if self._client.fail_with:
            raise self._client.fail_with
        rows = self._client.tables.setdefault(self._table, [])
        matching = [row for row in rows if all(check(row) for check in self._filters)]

        if self._op == "select":
            result = [dict(row) for row in matching]
            if self._order:
                column, desc = self._order
                result.sort(key=lambda row: str(row.get(column)), reverse=desc)
            if self._limit is not None:
                result = result[: self._limit]
            return _FakeResponse(result)

        if self._op == "update":
            for row in matching:
                row.update(self._payload)
            return _FakeResponse([dict(row) for row in matching])

        key = self._on_conflict or self.UNIQUE_KEYS.get(self._table)
        existing = [row for row in rows if key and row.get(key) == self._payload.get(key)]
        if existing and self._op == "upsert":
            existing[0].update(self._payload)
            return _FakeResponse([dict(existing[0])])
        if existing:
            raise Exception('duplicate key value violates unique constraint "pk"')
        rows.append(dict(self._payload))
        return _FakeResponse([dict(self._payload)])


class FakeSupabaseClient:
    """Just enough of the supabase-py query builder for SupabaseStore."""

    def __init__(self):
        self.tables = {}
        self.fail_with = None

    def table(self, name):
        return _FakeQuery(self, name)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return MemoryStore(voucher_options=DEFAULT_OPTIONS, prompts=base_prompts())


@pytest.fixture
def content():
    return AdventContent(prompts=base_prompts(), voucher_options=DEFAULT_OPTIONS)


@pytest.fixture
def flask_app(store):
    app = create_app(
        {
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": "sqlite://",
            "ADVENT_STORE_BACKEND": "memory",
            "ADVENT_STORE": store,
            "ADVENT_USER_PROVIDER": lambda: {"id": 1},
            "ADVENT_DAY_OVERRIDE_ENABLED": True,
        }
    )
    return app


@pytest.fixture(params=["memory", "file", "sql", "supabase"])
def store_factory(request, tmp_path, content):
    """Return a callable building fresh store instances over the same backing data."""
    backend = request.param
    if backend == "memory":
        shared = MemoryStore(voucher_options=content.voucher_options, prompts=content.prompts)
        yield lambda: shared
    elif backend == "file":
        path = tmp_path / "advent.json"
        seed = {
            "voucher_options": [option.to_dict() for option in content.voucher_options],
            "prompts": content.prompts,
        }
        JsonFileStore(path, seed=seed)
        yield lambda: JsonFileStore(path)
    elif backend == "sql":
        app = create_app(
            {
                "TESTING": True,
                "SQLALCHEMY_DATABASE_URI": "sqlite://",
                "ADVENT_STORE_BACKEND": "memory",
                "ADVENT_STORE": MemoryStore(),
            }
        )
        with app.app_context():
            yield lambda: SqlStore(content_loader=lambda: content)
    else:
        client = FakeSupabaseClient()
        yield lambda: SupabaseStore(client, content_loader=lambda: content)


@pytest.fixture
def any_store(store_factory):
    return store_factory()


def day_record(day, stars, answer="ember"):
    return DayRecord(day=day, stars=stars, puzzle_answer=answer)

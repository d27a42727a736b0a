from __future__ import annotations

from panoramaid.core.dual_tier_cache import DAY_MS, DAYS_TO_CACHE, DualTierCache
from panoramaid.infra.storage.cookie_store import SqliteCookieStore
from panoramaid.infra.storage.local_store import SqliteLocalStore
from panoramaid.infra.storage.schema import ensure_schema
from panoramaid.infra.storage.sqlite_engine import SqliteEngine, open_storage_db

NOW = 1_700_000_000_000


class FakeClock:
    def __init__(self, now: int) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now


def _make_engine() -> SqliteEngine:
    engine = open_storage_db(":memory:")
    ensure_schema(engine)
    return engine


def _make_cache(
    engine: SqliteEngine,
    clock: FakeClock,
    *,
    cookies: bool = True,
    local: bool = True,
) -> tuple[DualTierCache, SqliteCookieStore, SqliteLocalStore]:
    cookie_store = SqliteCookieStore(engine, enabled=cookies, clock=clock)
    local_store = SqliteLocalStore(engine, enabled=local)
    cache = DualTierCache([cookie_store, local_store], cookie_domain="example.com", clock=clock)
    return cache, cookie_store, local_store


def test_write_then_read_respects_expiry():
    clock = FakeClock(NOW)
    cache, _, _ = _make_cache(_make_engine(), clock)

    cache.write("k", "v", NOW + 1000)

    clock.now = NOW + 500
    assert cache.read("k") == "v"
    clock.now = NOW + 2000
    assert cache.read("k") is None


def test_value_survives_either_backend_being_disabled():
    clock = FakeClock(NOW)
    engine = _make_engine()
    cache, _, _ = _make_cache(engine, clock)
    cache.write("k", "v", NOW + 1000)

    only_local, _, _ = _make_cache(engine, clock, cookies=False)
    only_cookie, _, _ = _make_cache(engine, clock, local=False)

    assert only_local.read("k") == "v"
    assert only_cookie.read("k") == "v"


def test_write_stores_companion_expiry_and_cookie_domain():
    clock = FakeClock(NOW)
    engine = _make_engine()
    cache, _, local_store = _make_cache(engine, clock)

    cache.write("k", "v", NOW + 1000)

    assert local_store.get("k") == "v"
    assert local_store.get("k_exp") == str(NOW + 1000)
    row = engine.fetchone("SELECT domain, expires_ms, same_site FROM cookies WHERE name = 'k'")
    assert row["domain"] == "example.com"
    assert row["expires_ms"] == NOW + 1000
    assert row["same_site"] == "Lax"


def test_default_expiry_is_seven_days():
    clock = FakeClock(NOW)
    cache, _, local_store = _make_cache(_make_engine(), clock)

    cache.write("k", "v")

    assert local_store.get("k_exp") == str(NOW + DAYS_TO_CACHE * DAY_MS)


def test_local_value_without_companion_is_trusted():
    clock = FakeClock(NOW)
    cache, _, local_store = _make_cache(_make_engine(), clock)

    local_store.set("legacy", "x")

    assert cache.read("legacy") == "x"


def test_non_numeric_companion_is_treated_as_absent():
    clock = FakeClock(NOW)
    cache, _, local_store = _make_cache(_make_engine(), clock)

    local_store.set("k", "v")
    local_store.set("k_exp", "soon")

    assert cache.read("k") is None


def test_cookie_hit_wins_over_local_storage():
    clock = FakeClock(NOW)
    cache, cookie_store, local_store = _make_cache(_make_engine(), clock)

    cookie_store.set("k", "from-cookie", NOW + 1000)
    local_store.set("k", "from-local")

    assert cache.read("k") == "from-cookie"


def test_delete_clears_both_backends():
    clock = FakeClock(NOW)
    cache, cookie_store, local_store = _make_cache(_make_engine(), clock)
    cache.write("k", "v", NOW + 1000)

    cache.delete("k")
    cache.delete("missing")

    assert cache.read("k") is None
    assert cookie_store.get("k") is None
    assert local_store.get("k") is None
    assert local_store.get("k_exp") is None


def test_empty_key_or_value_is_not_written():
    clock = FakeClock(NOW)
    cache, _, local_store = _make_cache(_make_engine(), clock)

    cache.write("k", "")
    cache.write("k", None)
    cache.write("", "v")

    assert cache.read("k") is None
    assert local_store.get("k_exp") is None


def test_untracked_write_has_no_companion():
    clock = FakeClock(NOW)
    cache, _, local_store = _make_cache(_make_engine(), clock)

    cache.write("profile", "p1", NOW + 1000, track_expiry=False)

    assert local_store.get("profile") == "p1"
    assert local_store.get("profile_exp") is None


def test_all_backends_disabled_degrades_to_absent():
    clock = FakeClock(NOW)
    cache, _, _ = _make_cache(_make_engine(), clock, cookies=False, local=False)

    cache.write("k", "v", NOW + 1000)
    cache.delete("k")

    assert cache.read("k") is None

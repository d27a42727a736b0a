from __future__ import annotations

import json
import logging

from panoramaid.core.consent import ConsentResolver
from panoramaid.core.dual_tier_cache import DualTierCache
from panoramaid.core.resolution import Endpoints, ResolutionProtocol, parse_response, use_cookieless
from panoramaid.domain.models import ConsentData, IdResponse, MalformedResponse
from panoramaid.domain.ports.execution import ExecutionResult, RequestSpec
from panoramaid.infra.storage.cookie_store import SqliteCookieStore
from panoramaid.infra.storage.local_store import SqliteLocalStore
from panoramaid.infra.storage.schema import ensure_schema
from panoramaid.infra.storage.sqlite_engine import open_storage_db

NOW = 1_700_000_000_000
DAY = 86_400_000
SAFARI_UA = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 14_0) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.0 Safari/605.1.15"
)
CHROME_UA = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 14_0) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


class FakeExecutor:
    def __init__(self, result: ExecutionResult | None = None) -> None:
        self.requests: list[RequestSpec] = []
        self.result = result or ExecutionResult(ok=True, status_code=200, body=None)

    def execute(self, request: RequestSpec) -> ExecutionResult:
        self.requests.append(request)
        return self.result


def ok_json(payload) -> ExecutionResult:
    return ExecutionResult(ok=True, status_code=200, body=json.dumps(payload))


def _make_protocol(
    executor: FakeExecutor,
    *,
    user_agent: str | None = None,
) -> tuple[ResolutionProtocol, DualTierCache]:
    engine = open_storage_db(":memory:")
    ensure_schema(engine)
    clock = lambda: NOW  # noqa: E731
    cache = DualTierCache([SqliteCookieStore(engine, clock=clock), SqliteLocalStore(engine)], clock=clock)
    protocol = ResolutionProtocol(
        cache,
        executor,
        ConsentResolver(cache),
        user_agent=user_agent,
        endpoints=Endpoints(data_path="/data"),
        clock=clock,
    )
    return protocol, cache


def test_host_selection_heuristic():
    assert use_cookieless(SAFARI_UA) is True
    assert use_cookieless(CHROME_UA) is False
    assert use_cookieless(None) is False

    protocol, _ = _make_protocol(FakeExecutor(), user_agent=SAFARI_UA)
    assert protocol.request_host() == "c.ltmsphrcl.net"
    protocol, _ = _make_protocol(FakeExecutor(), user_agent=CHROME_UA)
    assert protocol.request_host() == "id.crwdcntrl.net"


def test_id_request_omits_empty_parameters():
    protocol, _ = _make_protocol(FakeExecutor())

    request = protocol.build_id_request(None, None, ConsentData(gdpr_applies=True, consent_string=""))

    assert request.method == "GET"
    assert request.url == "https://id.crwdcntrl.net/id"
    assert request.with_credentials is True
    assert request.query == {"gdpr_applies": "true"}


def test_id_request_carries_profile_client_and_consent():
    protocol, _ = _make_protocol(FakeExecutor())

    request = protocol.build_id_request("7", "p1", ConsentData(gdpr_applies=False, consent_string="CS"))

    assert request.query == {"fp": "p1", "c": "7", "gdpr_applies": "false", "gdpr_consent": "CS"}


def test_successful_response_persists_ids():
    executor = FakeExecutor(ok_json({"core_id": "abc", "profile_id": "p1", "expiry_ts": NOW + DAY, "errors": []}))
    protocol, cache = _make_protocol(executor)
    completed = []

    core_id = protocol.resolve(None, None, None, completed.append)

    assert core_id == "abc"
    assert completed == ["abc"]
    assert cache.read("panoramaId") == "abc"
    assert cache.read("panoramaId_expiry") == str(NOW + DAY)
    assert cache.read("_cc_id") == "p1"


def test_client_no_consent_sets_window_and_stops():
    protocol, cache = _make_protocol(FakeExecutor())
    cache.write("panoramaId", "old", NOW + DAY)
    cache.write("panoramaId_expiry", NOW + DAY, NOW + DAY)

    result = protocol.apply_response(
        IdResponse(no_consent="CLIENT", expiry_ts=NOW + 5000, errors=[111]),
        client_id="7",
    )

    assert result is None
    assert cache.read("panoramaId_expiry_7") == str(NOW + 5000)
    assert cache.read("panoramaId") == "old"
    assert cache.read("panoramaId_expiry") == str(NOW + DAY)


def test_error_free_response_clears_client_window():
    protocol, cache = _make_protocol(FakeExecutor())
    cache.write("panoramaId_expiry_7", NOW + 5000, NOW + 5000)

    result = protocol.apply_response(
        IdResponse(profile_id="p1", core_id="abc", expiry_ts=NOW + DAY),
        client_id="7",
    )

    assert result == "abc"
    assert cache.read("panoramaId_expiry_7") is None


def test_missing_profile_clears_identity():
    protocol, cache = _make_protocol(FakeExecutor())
    cache.write("panoramaId", "old", NOW + DAY)
    cache.write("_cc_id", "p-old", NOW + DAY, track_expiry=False)

    result = protocol.apply_response(IdResponse(no_consent="ALL", expiry_ts=NOW + DAY), client_id=None)

    assert result is None
    assert cache.read("panoramaId") is None
    assert cache.read("_cc_id") is None
    assert cache.read("panoramaId_expiry") == str(NOW + DAY)


def test_missing_core_consent_keeps_profile_but_clears_core_id():
    protocol, cache = _make_protocol(FakeExecutor())
    cache.write("panoramaId", "old", NOW + DAY)
    cache.write("_cc_id", "p-old", NOW + DAY, track_expiry=False)

    result = protocol.apply_response(IdResponse(expiry_ts=NOW + DAY, errors=[111]), client_id=None)

    assert result is None
    assert cache.read("panoramaId") is None
    assert cache.read("_cc_id") == "p-old"


def test_profile_without_core_id_clears_core_id():
    protocol, cache = _make_protocol(FakeExecutor())
    cache.write("panoramaId", "old", NOW + DAY)

    result = protocol.apply_response(IdResponse(profile_id="p2", expiry_ts=NOW + DAY), client_id=None)

    assert result is None
    assert cache.read("panoramaId") is None
    assert cache.read("_cc_id") == "p2"


def test_profile_not_refreshed_when_consent_has_errors():
    protocol, cache = _make_protocol(FakeExecutor())
    cache.write("_cc_id", "p-old", NOW + DAY, track_expiry=False)

    result = protocol.apply_response(
        IdResponse(profile_id="p-new", core_id="abc", expiry_ts=NOW + DAY, errors=[111]),
        client_id=None,
    )

    assert result == "abc"
    assert cache.read("_cc_id") == "p-old"
    assert cache.read("panoramaId") == "abc"


def test_transport_failure_leaves_cache_untouched():
    executor = FakeExecutor(ExecutionResult(ok=False, error_code="NETWORK_ERROR", error_message="Network error"))
    protocol, cache = _make_protocol(executor)
    cache.write("_cc_id", "p1", NOW + DAY, track_expiry=False)
    completed = []

    assert protocol.resolve("7", "p1", None, completed.append) is None

    assert completed == [None]
    assert cache.read("_cc_id") == "p1"
    assert cache.read("panoramaId_expiry") is None


def test_malformed_and_empty_bodies_are_no_ops():
    for body in ("not-json", "[1, 2]", "", None):
        executor = FakeExecutor(ExecutionResult(ok=True, status_code=200, body=body))
        protocol, cache = _make_protocol(executor)
        cache.write("panoramaId", "old", NOW + DAY)

        assert protocol.resolve(None, None, None) is None
        assert cache.read("panoramaId") == "old"


def test_linkage_call_posts_hashed_identifier_and_applies_response():
    executor = FakeExecutor(ok_json({"core_id": "abc", "profile_id": "p1", "expiry_ts": NOW + DAY}))
    protocol, cache = _make_protocol(executor, user_agent=SAFARI_UA)

    assert protocol.send_linkage_data("7", "hashed") == "abc"

    request = executor.requests[0]
    assert request.method == "POST"
    assert request.url == "https://c.st.dev.lotame-cookie-nerf.net/data"
    assert request.json == {"c": "7", "did": "hashed"}
    assert request.with_credentials is False
    assert cache.read("panoramaId") == "abc"


def test_linkage_call_requires_client_and_identifier():
    executor = FakeExecutor()
    protocol, _ = _make_protocol(executor)

    assert protocol.send_linkage_data("7", None) is None
    assert protocol.send_linkage_data(None, "hashed") is None
    assert executor.requests == []


def test_parse_response_normalizes_field_types():
    response = parse_response(
        json.dumps({"profile_id": 5, "core_id": "", "no_consent": "CLIENT", "expiry_ts": "123", "errors": "111"})
    )

    assert response == IdResponse(profile_id=None, core_id=None, no_consent="CLIENT", expiry_ts=123, errors=[])
    assert response.consent_is_error_free is True
    assert parse_response(json.dumps({"errors": [111, True]})).errors == [111]
    assert isinstance(parse_response("{oops"), MalformedResponse)
    assert parse_response("") is None


def test_integral_float_error_code_counts_as_missing_consent():
    response = parse_response(json.dumps({"profile_id": "p1", "errors": [111.0, 2.5]}))

    assert response.errors == [111]
    assert response.consent_is_error_free is False


def test_transport_failure_log_carries_status_and_duration(caplog):
    executor = FakeExecutor(
        ExecutionResult(ok=False, status_code=503, error_code="HTTP_ERROR", error_message="down", duration_ms=12)
    )
    protocol, _ = _make_protocol(executor)

    with caplog.at_level(logging.ERROR, logger="panoramaid"):
        protocol.resolve(None, None, None)

    assert "HTTP_ERROR: GET https://id.crwdcntrl.net/id failed (status=503, 12 ms): down" in caplog.text

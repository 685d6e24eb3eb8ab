import logging

import pytest
import requests

from conftest import NETIXLAN_URL, FakeResponse, FakeSession, netixlan
from peering_monitor.ixp import (
    CACHED,
    FRESH,
    STALE,
    UNAVAILABLE,
    IxpMembershipSource,
    PeeringDBUnavailable,
    extract_ix_ids,
)
from peering_monitor.settings import PEERINGDB_CACHE_TTL, Settings
from peering_monitor.store import MemoryStore, TtlCache

ASN = 1136


@pytest.fixture
def store(clock):
    return MemoryStore(clock=clock)


def make_source(session, store, headers=None):
    return IxpMembershipSource(
        session,
        TtlCache(store, "peeringdb", PEERINGDB_CACHE_TTL),
        TtlCache(store, "peeringdb-last-good", 30 * 24 * 3600),
        headers=headers or {"User-Agent": "test"},
        timeout=3,
    )


def test_extract_ix_ids_dedups_and_skips_missing():
    payload = {"data": [{"ix_id": 26}, {"ix_id": 26}, {"ix_id": 59}, {"name": "no id"}, {"ix_id": None}, "junk"]}
    assert extract_ix_ids(payload) == {26, 59}


@pytest.mark.parametrize("payload", [
    {"data": [], "meta": {"error": "Request was throttled."}},
    {"data": "nope"},
    {"meta": {}},
    ["not", "an", "object"],
])
def test_extract_ix_ids_unavailable(payload):
    with pytest.raises(PeeringDBUnavailable):
        extract_ix_ids(payload)


def test_fresh_lookup_is_cached(store, clock):
    session = FakeSession({(NETIXLAN_URL, ASN): FakeResponse(200, netixlan(26, 59, 26))})
    source = make_source(session, store)

    first = source.get_ixp_memberships(ASN)
    clock.advance(PEERINGDB_CACHE_TTL - 1)
    second = source.get_ixp_memberships(ASN)

    assert first.ix_ids == frozenset({26, 59})
    assert first.status == FRESH
    assert second.ix_ids == first.ix_ids
    assert second.status == CACHED
    assert len(session.calls) == 1
    assert session.calls[0]["params"] == {"asn": ASN}
    assert session.calls[0]["timeout"] == 3


def test_cache_expires(store, clock):
    session = FakeSession({(NETIXLAN_URL, ASN): FakeResponse(200, netixlan(26))})
    source = make_source(session, store)
    source.get_ixp_memberships(ASN)

    clock.advance(PEERINGDB_CACHE_TTL)
    assert source.get_ixp_memberships(ASN).status == FRESH
    assert len(session.calls) == 2


def test_rate_limited_without_cache_returns_empty(store, caplog):
    session = FakeSession({(NETIXLAN_URL, ASN): FakeResponse(429, {"message": "Request was throttled."})})
    source = make_source(session, store)

    with caplog.at_level(logging.WARNING):
        lookup = source.get_ixp_memberships(ASN)

    assert lookup.ix_ids == frozenset()
    assert lookup.status == UNAVAILABLE
    assert lookup.degraded
    assert "no cache available" in caplog.text


def test_rate_limited_falls_back_to_last_good(store, clock):
    session = FakeSession({(NETIXLAN_URL, ASN): FakeResponse(200, netixlan(26, 31))})
    source = make_source(session, store)
    source.get_ixp_memberships(ASN)

    clock.advance(PEERINGDB_CACHE_TTL + 60)
    session.responses[(NETIXLAN_URL, ASN)] = FakeResponse(200, {"data": [], "meta": {"error": "throttled"}})
    lookup = source.get_ixp_memberships(ASN)

    assert lookup.ix_ids == frozenset({26, 31})
    assert lookup.status == STALE
    assert lookup.degraded


@pytest.mark.parametrize("response", [
    FakeResponse(200, {"data": {"oops": 1}}),
    FakeResponse(200, b"<html>maintenance</html>"),
    FakeResponse(500, b"error"),
    requests.ConnectionError("connection refused"),
    requests.Timeout("timed out"),
])
def test_upstream_problems_never_raise(store, response):
    session = FakeSession({(NETIXLAN_URL, ASN): response})
    lookup = make_source(session, store).get_ixp_memberships(ASN)
    assert lookup.status == UNAVAILABLE
    assert len(lookup) == 0


def test_empty_result_is_not_cached(store):
    session = FakeSession({(NETIXLAN_URL, ASN): FakeResponse(200, netixlan())})
    source = make_source(session, store)

    first = source.get_ixp_memberships(ASN)
    second = source.get_ixp_memberships(ASN)

    assert first.status == FRESH and not first.degraded
    assert second.status == FRESH
    assert len(session.calls) == 2


def test_api_key_header():
    settings = Settings(peeringdb_api_key="s3cret")
    headers = settings.peeringdb_headers()
    assert headers["Authorization"] == "Api-Key s3cret"
    assert "User-Agent" in headers
    assert "Authorization" not in Settings().peeringdb_headers()


def test_headers_are_sent(store):
    session = FakeSession({(NETIXLAN_URL, ASN): FakeResponse(200, netixlan(26))})
    make_source(session, store, headers={"Authorization": "Api-Key k"}).get_ixp_memberships(ASN)
    assert session.calls[0]["headers"] == {"Authorization": "Api-Key k"}


def test_rate_limiter_is_used(store):
    class CountingLimiter:
        acquired = 0

        def acquire(self):
            self.acquired += 1
            return 0.0

    limiter = CountingLimiter()
    session = FakeSession({(NETIXLAN_URL, ASN): FakeResponse(200, netixlan(26))})
    source = make_source(session, store)
    source.rate_limiter = limiter

    source.get_ixp_memberships(ASN)
    source.get_ixp_memberships(ASN)
    assert limiter.acquired == 1


class FullDiskStore(MemoryStore):
    def set(self, key, value, expire_in=None):
        raise OSError(28, "No space left on device")


def test_cache_write_failure_still_returns_fresh_data(clock, caplog):
    session = FakeSession({(NETIXLAN_URL, ASN): FakeResponse(200, netixlan(26, 59))})
    source = make_source(session, FullDiskStore(clock=clock))

    with caplog.at_level(logging.WARNING):
        lookup = source.get_ixp_memberships(ASN)

    assert lookup.status == FRESH
    assert lookup.ix_ids == frozenset({26, 59})
    assert "No space left on device" in caplog.text


@pytest.mark.parametrize("raw", [b"26", b'{"ix_id": 26}', b'["26"]', b"[true]"])
def test_malformed_cache_entry_is_a_miss(store, raw):
    store.set(f"peeringdb:{ASN}", raw)
    session = FakeSession({(NETIXLAN_URL, ASN): FakeResponse(200, netixlan(26))})

    lookup = make_source(session, store).get_ixp_memberships(ASN)

    assert lookup.status == FRESH
    assert lookup.ix_ids == frozenset({26})
    assert len(session.calls) == 1


def test_malformed_last_good_entry_is_unavailable(store):
    store.set(f"peeringdb-last-good:{ASN}", b'"26,59"')
    session = FakeSession({(NETIXLAN_URL, ASN): FakeResponse(429, b"")})

    lookup = make_source(session, store).get_ixp_memberships(ASN)

    assert lookup.status == UNAVAILABLE
    assert lookup.ix_ids == frozenset()

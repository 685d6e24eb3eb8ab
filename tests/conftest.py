import threading

import orjson
import pytest

from peering_monitor.settings import PEERINGDB_BASE


class FakeResponse:
    def __init__(self, status_code=200, content=b""):
        if isinstance(content, (dict, list)):
            content = orjson.dumps(content)
        elif isinstance(content, str):
            content = content.encode()
        self.status_code = status_code
        self.content = content

    @property
    def ok(self):
        return 200 <= self.status_code < 400

    @property
    def text(self):
        return self.content.decode("utf-8", "replace")


class FakeSession:
    """Stands in for requests.Session. Responses are keyed by URL, or by
    (URL, asn) for PeeringDB netixlan lookups. A value may be an exception
    instance to raise."""

    def __init__(self, responses=None):
        self.responses = dict(responses or {})
        self.calls = []
        self.headers = {}
        self._lock = threading.Lock()

    def get(self, url, params=None, headers=None, timeout=None):
        with self._lock:
            self.calls.append({"url": url, "params": params, "headers": headers, "timeout": timeout})
        key = (url, params["asn"]) if params and "asn" in params else url
        response = self.responses.get(key)
        if response is None:
            return FakeResponse(404, b"not found")
        if isinstance(response, Exception):
            raise response
        return response

    def calls_to(self, url):
        return [c for c in self.calls if c["url"] == url]


class FakeClock:
    def __init__(self, now=1_700_000_000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


NETIXLAN_URL = f"{PEERINGDB_BASE}/netixlan"


def jsonl(*rows):
    return b"\n".join(orjson.dumps({"CIDR": c, "ASN": a, "Hits": h}) for c, a, h in rows) + b"\n"


def netixlan(*ix_ids):
    return {"data": [{"ix_id": ix_id, "asn": 0} for ix_id in ix_ids], "meta": {}}


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def session():
    return FakeSession()


@pytest.fixture
def cloudflare_table():
    return jsonl(
        ("104.16.0.0/13", 13335, 100),
        ("2606:4700::/32", 13335, 2500),
        ("172.64.0.0/13", 13335, 4000),
        ("193.0.0.0/21", 3333, 3500),
    )

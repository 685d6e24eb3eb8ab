"""
Global BGP table source (bgp.tools table.jsonl).

The table is one JSON object per line:
    {"CIDR": "104.16.0.0/13", "ASN": 13335, "Hits": 2913}

Hits is the number of bgp.tools peer sessions that see the route. A failed
download is fatal for the caller: there is no stale fallback because old
route data changes the report.
"""

import logging
import time
from dataclasses import dataclass

import orjson
import requests

from .errors import UpstreamError
from .settings import BGP_TABLE_URL, UA

logger = logging.getLogger(__name__)

EXCERPT_LEN = 200


@dataclass(frozen=True)
class RouteEntry:
    prefix: str
    origin_asn: int
    visibility: int


def _parse_line(line):
    rt = orjson.loads(line)
    prefix = rt["CIDR"]
    asn = rt["ASN"]
    hits = rt["Hits"]
    if not isinstance(prefix, str) or not prefix:
        raise ValueError("CIDR")
    for value in (asn, hits):
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError("not an integer")
    if hits < 0:
        raise ValueError("negative Hits")
    return RouteEntry(prefix=prefix, origin_asn=asn, visibility=hits)


def parse_route_table(payload):
    """Parse a table.jsonl payload. Malformed lines are skipped, never fatal."""
    if isinstance(payload, str):
        payload = payload.encode("utf-8")

    entries = []
    skipped = 0
    for line in payload.split(b"\n"):
        line = line.strip()
        if not line:
            continue
        try:
            entries.append(_parse_line(line))
        except (orjson.JSONDecodeError, KeyError, TypeError, ValueError):
            skipped += 1
            continue

    if skipped:
        logger.debug("Skipped %d malformed route table lines", skipped)
    return entries


class BgpTableSource:
    def __init__(self, session, cache, url=BGP_TABLE_URL, timeout=10):
        self.session = session
        self.cache = cache
        self.url = url
        self.timeout = timeout

    def get_route_table(self):
        """Return the cached table, downloading it when older than the TTL.

        Raises UpstreamError on a non-2xx answer, timeout or connection error.
        """
        entries = self.cache.get()
        if entries is not None:
            logger.debug("Using cached BGP table (%s routes, %.0fs old)", f"{len(entries):,}", self.cache.age())
            return entries

        with self.cache.refresh_lock:
            # another thread may have refreshed while we waited
            entries = self.cache.get()
            if entries is not None:
                return entries
            return self.cache.replace(self._download())

    def _download(self):
        logger.info("Fetching BGP table from %s", self.url)
        start_time = time.time()
        try:
            r = self.session.get(self.url, headers=UA, timeout=self.timeout)
        except requests.RequestException as e:
            raise UpstreamError("bgp.tools", None, f"{type(e).__name__}: {e}") from e

        if not r.ok:
            raise UpstreamError("bgp.tools", r.status_code, r.text[:EXCERPT_LEN])

        entries = parse_route_table(r.content)
        elapsed = time.time() - start_time
        logger.info("BGP table: %s routes in %.1fs", f"{len(entries):,}", elapsed)
        return entries

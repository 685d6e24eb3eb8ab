"""
PeeringDB IXP membership source.

Looks up /api/netixlan?asn=N and reduces it to the set of exchange ids the
network has a port at. PeeringDB rate limits anonymous callers hard, so an
upstream problem never raises: the caller gets the last known good set for
that ASN or an empty one, tagged with a status saying which.

Only non-empty answers are cached. An empty answer racing a rate limit
would otherwise hide a real membership list for a whole day.
"""

import logging
from dataclasses import dataclass

import orjson
import requests

from .settings import PEERINGDB_BASE

logger = logging.getLogger(__name__)

FRESH = "fresh"              # fetched from PeeringDB just now
CACHED = "cached"            # served from the 24h cache
STALE = "stale"              # upstream failed, last known good value
UNAVAILABLE = "unavailable"  # upstream failed, nothing to fall back on


@dataclass(frozen=True)
class IxpLookup:
    asn: int
    ix_ids: frozenset
    status: str

    @property
    def degraded(self):
        return self.status in (STALE, UNAVAILABLE)

    def __len__(self):
        return len(self.ix_ids)


class PeeringDBUnavailable(Exception):
    """Internal signal: PeeringDB answered, but not with usable data."""


def extract_ix_ids(payload):
    """Return the set of ix_id values in a netixlan response.

    Raises PeeringDBUnavailable when the payload carries meta.error or has no
    `data` array.
    """
    if not isinstance(payload, dict):
        raise PeeringDBUnavailable("response is not an object")
    meta = payload.get("meta")
    if isinstance(meta, dict) and meta.get("error"):
        raise PeeringDBUnavailable(f"meta.error: {meta['error']}")
    data = payload.get("data")
    if not isinstance(data, list):
        raise PeeringDBUnavailable("data is not an array")

    ix_ids = set()
    for entry in data:
        if not isinstance(entry, dict):
            continue
        ix_id = entry.get("ix_id")
        if isinstance(ix_id, int) and not isinstance(ix_id, bool) and ix_id:
            ix_ids.add(ix_id)
    return ix_ids


class IxpMembershipSource:
    def __init__(self, session, cache, last_good, headers, rate_limiter=None,
                 base_url=PEERINGDB_BASE, timeout=10):
        self.session = session
        self.cache = cache
        self.last_good = last_good
        self.headers = headers
        self.rate_limiter = rate_limiter
        self.base_url = base_url
        self.timeout = timeout

    def get_ixp_memberships(self, asn):
        cached = self._read(self.cache, asn)
        if cached is not None:
            return IxpLookup(asn, cached, CACHED)

        try:
            ix_ids = self._fetch(asn)
        except (requests.RequestException, ValueError, PeeringDBUnavailable) as e:
            return self._fallback(asn, e)

        if ix_ids:
            ordered = sorted(ix_ids)
            self._write(self.cache, ordered, asn)
            self._write(self.last_good, ordered, asn)
        else:
            logger.info("PeeringDB has no IXP ports for AS%s, not caching", asn)
        return IxpLookup(asn, frozenset(ix_ids), FRESH)

    @staticmethod
    def _read(cache, asn):
        """Cached id list as a frozenset, or None on a miss or an unusable entry."""
        try:
            value = cache.get(asn)
        except OSError as e:
            logger.warning("Could not read %s for AS%s: %s", cache.key(asn), asn, e)
            return None
        if value is None:
            return None
        if not isinstance(value, list) or not all(
                isinstance(i, int) and not isinstance(i, bool) for i in value):
            logger.warning("Ignoring malformed cache entry %s", cache.key(asn))
            return None
        return frozenset(value)

    @staticmethod
    def _write(cache, ordered, asn):
        try:
            cache.set(ordered, asn)
        except OSError as e:
            logger.warning("Could not write %s for AS%s: %s", cache.key(asn), asn, e)

    def _fetch(self, asn):
        if self.rate_limiter is not None:
            waited = self.rate_limiter.acquire()
            if waited:
                logger.debug("PeeringDB rate limiter held AS%s for %.1fs", asn, waited)

        r = self.session.get(
            f"{self.base_url}/netixlan",
            params={"asn": asn},
            headers=self.headers,
            timeout=self.timeout,
        )
        if not r.ok:
            raise PeeringDBUnavailable(f"HTTP {r.status_code}")
        return extract_ix_ids(orjson.loads(r.content))

    def _fallback(self, asn, error):
        previous = self._read(self.last_good, asn)
        if previous is not None:
            logger.warning("PeeringDB AS%s unavailable (%s), using last known good data", asn, error)
            return IxpLookup(asn, previous, STALE)
        logger.warning("PeeringDB AS%s unavailable (%s), no cache available", asn, error)
        return IxpLookup(asn, frozenset(), UNAVAILABLE)

"""
Cache layers.

Three independent key spaces, each with its own TTL:

  route table    process memory only (tens of thousands of entries)
  peeringdb:*    per-ASN IXP memberships, in a KeyValueStore
  result:*       finished per-ASN reports, in a KeyValueStore

A KeyValueStore only has to provide atomic per-key get/set with expiry.
MemoryStore keeps everything in a dict; FileStore writes one file per key
and swaps it into place with os.replace, so a reader never sees a
half-written blob.
"""

import logging
import os
import tempfile
import threading
import time

import orjson

from .report import PeeringReport

logger = logging.getLogger(__name__)


class KeyValueStore:
    def get(self, key):
        raise NotImplementedError

    def set(self, key, value, expire_in=None):
        raise NotImplementedError

    def delete(self, key):
        raise NotImplementedError


class MemoryStore(KeyValueStore):
    """Dict-backed store. Expired keys go on read, and every `sweep_every` sets."""

    def __init__(self, clock=time.time, sweep_every=256):
        self._clock = clock
        self._data = {}
        self._lock = threading.Lock()
        self._sweep_every = sweep_every
        self._sets = 0

    def get(self, key):
        with self._lock:
            item = self._data.get(key)
            if item is None:
                return None
            value, expires_at = item
            if expires_at is not None and self._clock() >= expires_at:
                del self._data[key]
                return None
            return value

    def set(self, key, value, expire_in=None):
        now = self._clock()
        expires_at = now + expire_in if expire_in is not None else None
        with self._lock:
            self._data[key] = (value, expires_at)
            self._sets += 1
            if self._sets >= self._sweep_every:
                self._sets = 0
                self._sweep(now)

    def _sweep(self, now):
        expired = [k for k, (_, expires_at) in self._data.items()
                   if expires_at is not None and now >= expires_at]
        for k in expired:
            del self._data[k]
        if expired:
            logger.debug("Swept %d expired cache entries", len(expired))

    def delete(self, key):
        with self._lock:
            self._data.pop(key, None)


class FileStore(KeyValueStore):
    """One file per key: a first line holding the expiry timestamp, then the value."""

    def __init__(self, directory, clock=time.time):
        self.directory = directory
        self._clock = clock
        os.makedirs(directory, exist_ok=True)

    def _path(self, key):
        safe = "".join(c if c.isalnum() or c in "-_." else "_" for c in key)
        return os.path.join(self.directory, f"{safe}.cache")

    def get(self, key):
        path = self._path(key)
        try:
            with open(path, "rb") as f:
                header = f.readline()
                value = f.read()
        except FileNotFoundError:
            return None

        try:
            expires_at = float(header) if header.strip() else None
        except ValueError:
            logger.warning("Discarding unreadable cache file %s", path)
            self.delete(key)
            return None

        if expires_at is not None and self._clock() >= expires_at:
            self.delete(key)
            return None
        return value

    def set(self, key, value, expire_in=None):
        header = b"" if expire_in is None else repr(self._clock() + expire_in).encode()
        fd, tmp_path = tempfile.mkstemp(dir=self.directory, suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(header + b"\n")
                f.write(value)
            os.replace(tmp_path, self._path(key))
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

    def delete(self, key):
        try:
            os.remove(self._path(key))
        except FileNotFoundError:
            pass


class TtlCache:
    """A namespaced key space over a store; values round-trip through orjson."""

    def __init__(self, store, namespace, ttl):
        self.store = store
        self.namespace = namespace
        self.ttl = ttl

    def key(self, *parts):
        return ":".join([self.namespace] + [str(p) for p in parts])

    def get(self, *parts):
        raw = self.store.get(self.key(*parts))
        if raw is None:
            return None
        try:
            return orjson.loads(raw)
        except orjson.JSONDecodeError:
            logger.warning("Dropping corrupt cache entry %s", self.key(*parts))
            self.store.delete(self.key(*parts))
            return None

    def set(self, value, *parts, ttl=None):
        self.store.set(self.key(*parts), orjson.dumps(value), expire_in=self.ttl if ttl is None else ttl)

    def delete(self, *parts):
        self.store.delete(self.key(*parts))


class RouteTableCache:
    """Process-local holder for the global routing table.

    The table is replaced wholesale as an immutable tuple, so readers either
    see the old table or the new one. `refresh_lock` lets a single thread
    download on a miss while the others wait for its result.
    """

    def __init__(self, ttl, clock=time.time):
        self.ttl = ttl
        self._clock = clock
        self._snapshot = None  # (entries, fetched_at)
        self.refresh_lock = threading.Lock()

    def get(self):
        snapshot = self._snapshot
        if snapshot is None:
            return None
        entries, fetched_at = snapshot
        if self._clock() - fetched_at >= self.ttl:
            return None
        return entries

    def replace(self, entries):
        entries = tuple(entries)
        self._snapshot = (entries, self._clock())
        return entries

    def age(self):
        snapshot = self._snapshot
        if snapshot is None:
            return None
        return self._clock() - snapshot[1]


class ReportCache:
    def __init__(self, store, ttl):
        self._cache = TtlCache(store, "result", ttl)

    def get_cached_report(self, asn):
        data = self._cache.get(asn)
        if data is None:
            return None
        try:
            return PeeringReport.from_dict(data)
        except (KeyError, TypeError, ValueError):
            logger.warning("Cached report for AS%s has an unexpected shape, ignoring it", asn)
            self._cache.delete(asn)
            return None

    def put_report(self, asn, report):
        self._cache.set(report.to_dict(), asn)

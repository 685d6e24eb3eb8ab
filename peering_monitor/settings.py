"""
Configuration for the peering monitor.

Upstream endpoints and cache lifetimes are module-level constants; anything
that differs per deployment (API key, cache directory, timeouts) is read from
the environment by Settings.from_env() and may be overridden on the command
line.
"""

import os
from dataclasses import dataclass, field
from typing import Optional

USER_AGENT = "cloudflare-network-monitor/1.0 - github.com/mikepage/cloudflare-network-monitor"
UA = {"User-Agent": USER_AGENT}

CLOUDFLARE_AS = 13335

BGP_TABLE_URL = "https://bgp.tools/table.jsonl"
PEERINGDB_BASE = "https://www.peeringdb.com/api"
OFFICIAL_PREFIX_URLS = (
    "https://www.cloudflare.com/ips-v4",
    "https://www.cloudflare.com/ips-v6",
)

ROUTE_TABLE_TTL = 30 * 60         # 30 min
PEERINGDB_CACHE_TTL = 24 * 3600   # 24h
RESULT_CACHE_TTL = 24 * 3600      # 24h
LAST_GOOD_TTL = 30 * 24 * 3600    # fallback copy of IXP memberships

DEFAULT_TIMEOUT = 10
PEERINGDB_REQUESTS_PER_MINUTE = 20  # anonymous limit


@dataclass(frozen=True)
class ScoringWeights:
    """Weights of the composite score. Bump `version` when any value changes."""
    version: str = "v2"
    health: int = 40
    regional: int = 40
    overlap_per_ixp: int = 10
    overlap_cap: int = 20
    low_visibility_floor: int = 1000
    low_visibility_ratio: float = 0.5
    low_visibility_limit: int = 50


@dataclass
class Settings:
    monitored_asn: int = CLOUDFLARE_AS
    peeringdb_api_key: Optional[str] = None
    cache_dir: Optional[str] = None
    timeout: float = DEFAULT_TIMEOUT
    peeringdb_requests_per_minute: float = PEERINGDB_REQUESTS_PER_MINUTE
    route_table_ttl: float = ROUTE_TABLE_TTL
    peeringdb_cache_ttl: float = PEERINGDB_CACHE_TTL
    result_cache_ttl: float = RESULT_CACHE_TTL
    last_good_ttl: float = LAST_GOOD_TTL
    weights: ScoringWeights = field(default_factory=ScoringWeights)

    @classmethod
    def from_env(cls, environ=None):
        env = os.environ if environ is None else environ
        settings = cls()
        settings.peeringdb_api_key = env.get("PEERINGDB_API_KEY") or None
        settings.cache_dir = env.get("PEERING_MONITOR_CACHE_DIR") or None
        if env.get("PEERING_MONITOR_TIMEOUT"):
            settings.timeout = float(env["PEERING_MONITOR_TIMEOUT"])
        if env.get("PEERINGDB_REQUESTS_PER_MINUTE"):
            settings.peeringdb_requests_per_minute = float(env["PEERINGDB_REQUESTS_PER_MINUTE"])
        return settings

    def peeringdb_headers(self):
        headers = dict(UA)
        if self.peeringdb_api_key:
            headers["Authorization"] = f"Api-Key {self.peeringdb_api_key}"
        return headers

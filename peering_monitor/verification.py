"""
Cross-check of the monitored network's published prefix list against the
BGP table. Optional; the score does not depend on it.

Each official prefix is classified as
  exact         announced as-is by the monitored ASN
  deaggregated  only more-specifics of it are announced
  not_found     nothing inside it is announced by the monitored ASN
"""

import logging
from dataclasses import asdict, dataclass, field
from typing import List

import requests

from .errors import UpstreamError
from .prefixes import parse_prefix, prefix_contains
from .settings import CLOUDFLARE_AS, OFFICIAL_PREFIX_URLS, UA

logger = logging.getLogger(__name__)

EXACT = "exact"
DEAGGREGATED = "deaggregated"
NOT_FOUND = "not_found"


@dataclass
class PrefixCheck:
    prefix: str
    status: str
    announced: List[str] = field(default_factory=list)


@dataclass
class VerificationResult:
    exact: int
    deaggregated: int
    not_found: int
    checks: List[PrefixCheck]

    @property
    def total(self):
        return self.exact + self.deaggregated + self.not_found

    def to_dict(self):
        d = asdict(self)
        d["total"] = self.total
        return d


def fetch_official_prefixes(session, urls=OFFICIAL_PREFIX_URLS, timeout=10):
    prefixes = []
    for url in urls:
        try:
            r = session.get(url, headers=UA, timeout=timeout)
        except requests.RequestException as e:
            raise UpstreamError(url, None, f"{type(e).__name__}: {e}") from e
        if not r.ok:
            raise UpstreamError(url, r.status_code, r.text[:200])
        for line in r.text.splitlines():
            line = line.strip()
            if line and not line.startswith("#"):
                prefixes.append(line)
    logger.info("Loaded %d official prefixes", len(prefixes))
    return prefixes


def verify_prefixes(official_prefixes, route_table, monitored_asn=CLOUDFLARE_AS):
    announced = []
    for e in route_table:
        if e.origin_asn != monitored_asn:
            continue
        try:
            announced.append((e.prefix, parse_prefix(e.prefix)))
        except ValueError:
            continue

    checks = []
    counts = {EXACT: 0, DEAGGREGATED: 0, NOT_FOUND: 0}
    for text in official_prefixes:
        try:
            official = parse_prefix(text)
        except ValueError:
            logger.warning("Ignoring unparsable official prefix %r", text)
            continue

        exact = [p for p, net in announced if net == official]
        if exact:
            check = PrefixCheck(str(official), EXACT, exact)
        else:
            inside = [p for p, net in announced if prefix_contains(official, net)]
            if inside:
                check = PrefixCheck(str(official), DEAGGREGATED, sorted(inside))
            else:
                check = PrefixCheck(str(official), NOT_FOUND)
        counts[check.status] += 1
        checks.append(check)

    return VerificationResult(
        exact=counts[EXACT],
        deaggregated=counts[DEAGGREGATED],
        not_found=counts[NOT_FOUND],
        checks=checks,
    )

"""
Per-ASN peering check: report cache, concurrent upstream fetches, scoring.

    checker = PeeringChecker(Settings.from_env())
    status, body = checker.handle_check("1136")

handle_check() is the query interface: it never raises, and always returns
an HTTP status code with a {"success": ...} envelope.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Optional

import requests

from .bgp_table import BgpTableSource
from .errors import InvalidAsnError, PeeringMonitorError, UpstreamError
from .ixp import UNAVAILABLE, IxpMembershipSource
from .ratelimit import RateLimiter
from .reference import ISP_LIST
from .report import PeeringReport, build_report
from .settings import UA, Settings
from .store import FileStore, MemoryStore, ReportCache, RouteTableCache, TtlCache

logger = logging.getLogger(__name__)

MAX_ASN = 4294967295


@dataclass
class CheckResult:
    report: PeeringReport
    cached: bool
    query_time: int  # ms
    bgp_table_size: Optional[int]

    def to_dict(self):
        result = self.report.to_dict()
        result["grade"] = self.report.grade
        return {
            "success": True,
            "result": result,
            "cached": self.cached,
            "query_time": self.query_time,
            "bgp_table_size": self.bgp_table_size,
        }


def parse_asn(value):
    """Parse "1136" or "AS1136" into an int; raises InvalidAsnError otherwise."""
    text = str(value).strip()
    if text[:2].upper() == "AS":
        text = text[2:]
    if not (text.isascii() and text.isdigit()):
        raise InvalidAsnError(value)
    asn = int(text)
    if not 0 < asn <= MAX_ASN:
        raise InvalidAsnError(value)
    return asn


def default_store(settings, clock=time.time):
    if settings.cache_dir:
        return FileStore(settings.cache_dir, clock=clock)
    return MemoryStore(clock=clock)


class PeeringChecker:
    def __init__(self, settings=None, session=None, store=None, clock=time.time, rate_limiter=None):
        self.settings = settings or Settings()
        if session is None:
            session = requests.Session()
            session.headers.update(UA)
        self.session = session
        self.store = store if store is not None else default_store(self.settings, clock)
        self.clock = clock

        self.route_cache = RouteTableCache(self.settings.route_table_ttl, clock=clock)
        self.report_cache = ReportCache(self.store, self.settings.result_cache_ttl)
        if rate_limiter is None:
            rate_limiter = RateLimiter.per_minute(self.settings.peeringdb_requests_per_minute)

        self.bgp = BgpTableSource(self.session, self.route_cache, timeout=self.settings.timeout)
        self.ixp = IxpMembershipSource(
            self.session,
            TtlCache(self.store, "peeringdb", self.settings.peeringdb_cache_ttl),
            TtlCache(self.store, "peeringdb-last-good", self.settings.last_good_ttl),
            headers=self.settings.peeringdb_headers(),
            rate_limiter=rate_limiter,
            timeout=self.settings.timeout,
        )

    def check(self, asn):
        """Return the CheckResult for `asn`. Raises UpstreamError if the BGP table is unavailable."""
        start_time = time.perf_counter()

        report = self.report_cache.get_cached_report(asn)
        if report is not None:
            table = self.route_cache.get()
            return CheckResult(
                report=report,
                cached=True,
                query_time=_elapsed_ms(start_time),
                bgp_table_size=len(table) if table is not None else None,
            )

        monitored_asn = self.settings.monitored_asn
        with ThreadPoolExecutor(max_workers=3) as executor:
            table_future = executor.submit(self.bgp.get_route_table)
            target_future = executor.submit(self.ixp.get_ixp_memberships, monitored_asn)
            isp_future = executor.submit(self.ixp.get_ixp_memberships, asn)

            route_table = table_future.result()
            target_ixps = target_future.result()
            isp_ixps = isp_future.result()

        report = build_report(
            asn,
            route_table,
            target_ixps,
            isp_ixps,
            monitored_asn=monitored_asn,
            weights=self.settings.weights,
        )

        if UNAVAILABLE in (target_ixps.status, isp_ixps.status):
            logger.warning("Not caching report for AS%s: PeeringDB data unavailable", asn)
        else:
            self.report_cache.put_report(asn, report)

        return CheckResult(
            report=report,
            cached=False,
            query_time=_elapsed_ms(start_time),
            bgp_table_size=len(route_table),
        )

    def check_all(self, isps=ISP_LIST):
        """Check every known ISP, skipping the ones that fail. Sorted by score, best first."""
        results = []
        for isp in isps:
            try:
                results.append(self.check(isp.asn))
            except PeeringMonitorError as e:
                logger.warning("Check for AS%s (%s) failed: %s", isp.asn, isp.name, e)
        results.sort(key=lambda r: r.report.score, reverse=True)
        return results

    def handle_check(self, asn_param=None):
        """Query interface. Returns (http_status, envelope)."""
        if asn_param is None or not str(asn_param).strip():
            return 200, {"success": True, "isps": [isp.to_dict() for isp in ISP_LIST]}

        try:
            asn = parse_asn(asn_param)
        except InvalidAsnError:
            return 400, {"success": False, "error": "Invalid ASN"}

        try:
            return 200, self.check(asn).to_dict()
        except UpstreamError as e:
            logger.error("Check for AS%s failed: %s", asn, e)
            return 502, {"success": False, "error": str(e)}
        except Exception:
            logger.exception("Check for AS%s failed", asn)
            return 500, {"success": False, "error": "Check failed"}


def _elapsed_ms(start_time):
    return int(round((time.perf_counter() - start_time) * 1000))

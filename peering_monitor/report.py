"""
Aggregation and scoring.

build_report() is a pure function of the route table, the two IXP lookups
and the static reference lists. Score (version v2, see ScoringWeights):

  health    up to 40  share of the monitored network's prefixes that are
                      NOT low-visibility
  regional  40        ISP and monitored network both at the regional IXP
                      of the ISP's country
  overlap   up to 20  10 per shared IXP

The total is clamped to [0, 100].
"""

import math
from dataclasses import asdict, dataclass, field
from typing import List, Optional

from .ixp import IxpLookup
from .prefixes import address_family, mask_length
from .reference import ISP_LIST, REGIONAL_IXPS, UNKNOWN_COUNTRY, find_isp
from .settings import CLOUDFLARE_AS, ScoringWeights

VISIBILITY_BUCKETS = (
    ("0-500", 0),
    ("500-1000", 500),
    ("1000-2000", 1000),
    ("2000-3000", 2000),
    ("3000+", 3000),
)


@dataclass
class LowVisibilityPrefix:
    prefix: str
    type: str
    visibility: int
    mask: int


@dataclass
class VisibilityBucket:
    label: str
    min: int
    count: int = 0


@dataclass
class IxpStatus:
    id: int
    name: str
    country: str
    target_present: bool
    isp_present: bool
    peered: bool


@dataclass
class PrefixSummary:
    total: int
    v4: int
    v6: int
    avg_visibility: int
    min_visibility: int
    max_visibility: int
    low_visibility: List[LowVisibilityPrefix] = field(default_factory=list)
    visibility_buckets: List[VisibilityBucket] = field(default_factory=list)


@dataclass
class PeeringSummary:
    shared_ixps: int
    isp_ixps: int
    target_ixps: int
    likely_direct_peering: bool
    regional_ixp: Optional[IxpStatus]
    all_ixps: List[IxpStatus]
    isp_ixp_data: str
    target_ixp_data: str


@dataclass
class ScoreBreakdown:
    health: int
    regional: int
    overlap: int


@dataclass
class PeeringReport:
    asn: int
    name: str
    country: str
    monitored_asn: int
    prefixes: PrefixSummary
    peering: PeeringSummary
    score: int
    score_breakdown: ScoreBreakdown
    score_version: str

    @property
    def grade(self):
        return score_grade(self.score)

    def to_dict(self):
        return asdict(self)

    @classmethod
    def from_dict(cls, data):
        p = data["prefixes"]
        prefixes = PrefixSummary(
            total=p["total"],
            v4=p["v4"],
            v6=p["v6"],
            avg_visibility=p["avg_visibility"],
            min_visibility=p["min_visibility"],
            max_visibility=p["max_visibility"],
            low_visibility=[LowVisibilityPrefix(**x) for x in p["low_visibility"]],
            visibility_buckets=[VisibilityBucket(**b) for b in p["visibility_buckets"]],
        )
        pr = data["peering"]
        regional = pr.get("regional_ixp")
        peering = PeeringSummary(
            shared_ixps=pr["shared_ixps"],
            isp_ixps=pr["isp_ixps"],
            target_ixps=pr["target_ixps"],
            likely_direct_peering=pr["likely_direct_peering"],
            regional_ixp=IxpStatus(**regional) if regional else None,
            all_ixps=[IxpStatus(**x) for x in pr["all_ixps"]],
            isp_ixp_data=pr["isp_ixp_data"],
            target_ixp_data=pr["target_ixp_data"],
        )
        return cls(
            asn=data["asn"],
            name=data["name"],
            country=data["country"],
            monitored_asn=data["monitored_asn"],
            prefixes=prefixes,
            peering=peering,
            score=data["score"],
            score_breakdown=ScoreBreakdown(**data["score_breakdown"]),
            score_version=data["score_version"],
        )


def round_half_up(x):
    return int(math.floor(x + 0.5))


def clamp(low, high, value):
    return max(low, min(high, value))


def score_grade(score):
    if score >= 90:
        return "excellent"
    if score >= 70:
        return "good"
    if score >= 50:
        return "fair"
    return "poor"


def visibility_histogram(entries):
    buckets = [VisibilityBucket(label, lower) for label, lower in VISIBILITY_BUCKETS]
    for e in entries:
        for bucket in reversed(buckets):
            if e.visibility >= bucket.min:
                bucket.count += 1
                break
    return buckets


def summarize_prefixes(entries, weights=ScoringWeights()):
    """Visibility statistics for routes already filtered to one origin."""
    visibilities = [e.visibility for e in entries]
    if visibilities:
        avg_visibility = round_half_up(sum(visibilities) / len(visibilities))
        min_visibility = min(visibilities)
        max_visibility = max(visibilities)
    else:
        avg_visibility = min_visibility = max_visibility = 0

    threshold = max(weights.low_visibility_floor, avg_visibility * weights.low_visibility_ratio)
    low = sorted((e for e in entries if e.visibility < threshold), key=lambda e: e.visibility)
    low_visibility = [
        LowVisibilityPrefix(
            prefix=e.prefix,
            type=address_family(e.prefix),
            visibility=e.visibility,
            mask=mask_length(e.prefix),
        )
        for e in low[:weights.low_visibility_limit]
    ]

    v6 = sum(1 for e in entries if address_family(e.prefix) == "v6")
    return PrefixSummary(
        total=len(entries),
        v4=len(entries) - v6,
        v6=v6,
        avg_visibility=avg_visibility,
        min_visibility=min_visibility,
        max_visibility=max_visibility,
        low_visibility=low_visibility,
        visibility_buckets=visibility_histogram(entries),
    )


def regional_ixp_statuses(target_ixps, isp_ixps, regional_ixps=REGIONAL_IXPS):
    statuses = []
    for ixp in regional_ixps:
        target_present = ixp.id in target_ixps
        isp_present = ixp.id in isp_ixps
        statuses.append(IxpStatus(
            id=ixp.id,
            name=ixp.name,
            country=ixp.country,
            target_present=target_present,
            isp_present=isp_present,
            peered=target_present and isp_present,
        ))
    return statuses


def composite_score(prefixes, shared_ixps, regional_ixp, weights=ScoringWeights()):
    if prefixes.total > 0:
        low_ratio = len(prefixes.low_visibility) / prefixes.total
        health = round_half_up((1 - low_ratio) * weights.health)
    else:
        health = 0
    regional = weights.regional if regional_ixp is not None and regional_ixp.peered else 0
    overlap = min(shared_ixps * weights.overlap_per_ixp, weights.overlap_cap)
    breakdown = ScoreBreakdown(health=health, regional=regional, overlap=overlap)
    return clamp(0, 100, health + regional + overlap), breakdown


def build_report(asn, route_table, target_ixps, isp_ixps, monitored_asn=CLOUDFLARE_AS,
                 weights=ScoringWeights(), isps=ISP_LIST, regional_ixps=REGIONAL_IXPS):
    """Combine route visibility and IXP overlap into one PeeringReport for `asn`.

    `target_ixps` and `isp_ixps` are IxpLookup results (or plain sets of ix
    ids) for the monitored network and the queried ASN.
    """
    target_status = target_ixps.status if isinstance(target_ixps, IxpLookup) else "fresh"
    isp_status = isp_ixps.status if isinstance(isp_ixps, IxpLookup) else "fresh"
    target_ids = frozenset(target_ixps.ix_ids if isinstance(target_ixps, IxpLookup) else target_ixps)
    isp_ids = frozenset(isp_ixps.ix_ids if isinstance(isp_ixps, IxpLookup) else isp_ixps)

    monitored_routes = [e for e in route_table if e.origin_asn == monitored_asn]
    prefixes = summarize_prefixes(monitored_routes, weights)

    shared_ixps = len(isp_ids & target_ids)

    isp = find_isp(asn, isps)
    country = isp.country if isp else UNKNOWN_COUNTRY
    all_ixps = regional_ixp_statuses(target_ids, isp_ids, regional_ixps)
    regional_ixp = next((ix for ix in all_ixps if ix.country == country), None)

    score, breakdown = composite_score(prefixes, shared_ixps, regional_ixp, weights)

    return PeeringReport(
        asn=asn,
        name=isp.name if isp else f"AS{asn}",
        country=country,
        monitored_asn=monitored_asn,
        prefixes=prefixes,
        peering=PeeringSummary(
            shared_ixps=shared_ixps,
            isp_ixps=len(isp_ids),
            target_ixps=len(target_ids),
            likely_direct_peering=shared_ixps > 0,
            regional_ixp=regional_ixp,
            all_ixps=all_ixps,
            isp_ixp_data=isp_status,
            target_ixp_data=target_status,
        ),
        score=score,
        score_breakdown=breakdown,
        score_version=weights.version,
    )

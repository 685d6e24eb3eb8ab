#!/usr/bin/env python3
"""
Check how well an ISP is positioned to reach Cloudflare (AS13335).

Combines the bgp.tools global table (visibility of Cloudflare's prefixes)
with PeeringDB IXP memberships (shared exchanges with the ISP) into a 0-100
score.

Usage:
    python3 scripts/check_isp.py                  # list known ISPs
    python3 scripts/check_isp.py 1136             # check one ASN
    python3 scripts/check_isp.py --all            # check every known ISP
    python3 scripts/check_isp.py 1136 --json      # print the API envelope
    python3 scripts/check_isp.py --verify         # cross-check official prefix list

Environment:
    PEERINGDB_API_KEY           optional, raises the PeeringDB rate limit
    PEERING_MONITOR_CACHE_DIR   keep PeeringDB/result caches on disk between runs
"""

import argparse
import logging
import sys

import orjson

from peering_monitor import PeeringChecker, Settings, parse_asn
from peering_monitor.errors import PeeringMonitorError
from peering_monitor.reference import ISP_LIST
from peering_monitor.verification import fetch_official_prefixes, verify_prefixes


def print_report(res):
    r = res.report
    p = r.prefixes
    peering = r.peering

    print("═" * 70)
    print(f"AS{r.asn} {r.name} ({r.country})")
    print("═" * 70)
    print(f"Score:                 {r.score}/100 ({r.grade}, formula {r.score_version})")
    print(f"  BGP health:          {r.score_breakdown.health}")
    print(f"  Regional IXP:        {r.score_breakdown.regional}")
    print(f"  Shared IXPs:         {r.score_breakdown.overlap}")
    print(f"\nAS{r.monitored_asn} prefixes:     {p.total:,} ({p.v4:,} v4, {p.v6:,} v6)")
    print(f"Visibility:            avg {p.avg_visibility:,}, min {p.min_visibility:,}, max {p.max_visibility:,}")
    for bucket in p.visibility_buckets:
        print(f"  {bucket.label:<12} {bucket.count:>8,}")
    if p.low_visibility:
        print(f"\nLowest visibility prefixes ({len(p.low_visibility)}):")
        for pfx in p.low_visibility[:10]:
            print(f"  {pfx.prefix:<24} {pfx.type}  seen by {pfx.visibility:,}")

    print(f"\nShared IXPs:           {peering.shared_ixps} "
          f"(ISP at {peering.isp_ixps}, AS{r.monitored_asn} at {peering.target_ixps})")
    if peering.isp_ixp_data in ("stale", "unavailable"):
        print(f"  WARNING: PeeringDB data for AS{r.asn} is {peering.isp_ixp_data}")
    if peering.target_ixp_data in ("stale", "unavailable"):
        print(f"  WARNING: PeeringDB data for AS{r.monitored_asn} is {peering.target_ixp_data}")
    if peering.regional_ixp:
        ix = peering.regional_ixp
        state = "peered" if ix.peered else f"not at {ix.name}"
        print(f"Regional IXP:          {ix.name} ({state})")
    else:
        print("Regional IXP:          none for this country")

    source = "cache" if res.cached else "live"
    table = f", table {res.bgp_table_size:,} prefixes" if res.bgp_table_size else ""
    print(f"\n[{source}, {res.query_time} ms{table}]")


def print_summary(results):
    print("═" * 70)
    print(f"{'ISP':<28} {'ASN':<9} {'CC':<4} {'Score':>5}  {'Regional IXP':<18} {'Shared':>6}")
    print("─" * 70)
    for res in results:
        r = res.report
        ix = r.peering.regional_ixp
        regional = "-" if ix is None else (ix.name if ix.peered else f"not at {ix.name}")
        print(f"{r.name[:27]:<28} AS{r.asn:<7} {r.country:<4} {r.score:>5}  {regional[:18]:<18} {r.peering.shared_ixps:>6}")
    print("═" * 70)


def print_verification(result):
    print("═" * 70)
    print("Official prefix list vs. BGP table")
    print("═" * 70)
    print(f"Exact:          {result.exact}")
    print(f"Deaggregated:   {result.deaggregated}")
    print(f"Not found:      {result.not_found}")
    for check in result.checks:
        if check.status != "exact":
            print(f"  {check.prefix:<24} {check.status} {', '.join(check.announced[:4])}")


def main():
    parser = argparse.ArgumentParser(description="Score an ISP's path to Cloudflare")
    parser.add_argument("asn", nargs="?", help="ASN to check, e.g. 1136 or AS1136")
    parser.add_argument("--all", action="store_true", help="Check every known ISP")
    parser.add_argument("--json", action="store_true", help="Print the JSON envelope instead of a summary")
    parser.add_argument("--verify", action="store_true", help="Cross-check Cloudflare's published prefix list")
    parser.add_argument("--cache-dir", help="Directory for the on-disk cache (default: in memory)")
    parser.add_argument("--timeout", type=float, help="Per-request timeout in seconds")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    settings = Settings.from_env()
    if args.cache_dir:
        settings.cache_dir = args.cache_dir
    if args.timeout:
        settings.timeout = args.timeout
    checker = PeeringChecker(settings)

    if args.verify:
        official = fetch_official_prefixes(checker.session, timeout=settings.timeout)
        table = checker.bgp.get_route_table()
        result = verify_prefixes(official, table, settings.monitored_asn)
        if args.json:
            sys.stdout.buffer.write(orjson.dumps(result.to_dict(), option=orjson.OPT_INDENT_2) + b"\n")
        else:
            print_verification(result)
        return 0

    if args.all:
        results = checker.check_all()
        if args.json:
            body = [res.to_dict() for res in results]
            sys.stdout.buffer.write(orjson.dumps(body, option=orjson.OPT_INDENT_2) + b"\n")
        else:
            print_summary(results)
        return 0 if len(results) == len(ISP_LIST) else 1

    if args.json or args.asn is None:
        status, body = checker.handle_check(args.asn)
        sys.stdout.buffer.write(orjson.dumps(body, option=orjson.OPT_INDENT_2) + b"\n")
        return 0 if status == 200 else 1

    try:
        print_report(checker.check(parse_asn(args.asn)))
    except PeeringMonitorError as e:
        print(f"ERROR: {e}")
        return 1
    return 0


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\n\nAborted by user.")
        sys.exit(1)
    except Exception as e:
        print(f"\n\nERROR: {e}")
        import traceback
        traceback.print_exc()
        sys.exit(1)

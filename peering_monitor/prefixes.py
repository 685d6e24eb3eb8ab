"""
CIDR helpers.

address_family() and mask_length() are the cheap string checks used when
summarising the route table; parse_prefix() and prefix_contains() do real
parsing and are only needed for the official prefix cross-check.
"""

import ipaddress


def parse_prefix(text):
    """Parse an IPv4 or IPv6 prefix. Host bits are masked off; raises ValueError."""
    return ipaddress.ip_network(text.strip(), strict=False)


def prefix_contains(outer, inner):
    """True if `inner` lies within `outer`. Prefixes of different families never match."""
    if isinstance(outer, str):
        outer = parse_prefix(outer)
    if isinstance(inner, str):
        inner = parse_prefix(inner)
    if outer.version != inner.version:
        return False
    return inner.subnet_of(outer)


def address_family(prefix):
    return "v6" if ":" in prefix else "v4"


def mask_length(prefix):
    _, sep, suffix = prefix.partition("/")
    if not sep:
        return 0
    try:
        return int(suffix)
    except ValueError:
        return 0

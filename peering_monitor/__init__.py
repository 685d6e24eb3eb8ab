"""How well is an ISP positioned to reach Cloudflare? BGP visibility and IXP overlap."""

from .errors import InvalidAsnError, PeeringMonitorError, UpstreamError
from .report import PeeringReport, build_report
from .service import CheckResult, PeeringChecker, parse_asn
from .settings import Settings

__version__ = "1.0.0"

__all__ = [
    "CheckResult",
    "InvalidAsnError",
    "PeeringChecker",
    "PeeringMonitorError",
    "PeeringReport",
    "Settings",
    "UpstreamError",
    "build_report",
    "parse_asn",
]

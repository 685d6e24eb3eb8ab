"""Static reference data: regional IXPs and the ISPs the dashboard knows about."""

from dataclasses import asdict, dataclass


@dataclass(frozen=True)
class RegionalIxp:
    id: int
    name: str
    country: str


@dataclass(frozen=True)
class IspRecord:
    asn: int
    name: str
    country: str

    def to_dict(self):
        return asdict(self)


# PeeringDB IX ids. Cloudflare has an open peering policy at all of these.
REGIONAL_IXPS = (
    RegionalIxp(26, "AMS-IX", "NL"),
    RegionalIxp(59, "BNIX", "BE"),
    RegionalIxp(31, "DE-CIX Frankfurt", "DE"),
    RegionalIxp(297, "LU-CIX", "LU"),
    RegionalIxp(359, "France-IX Paris", "FR"),
)

ISP_LIST = (
    # Netherlands
    IspRecord(1136, "KPN", "NL"),
    IspRecord(9143, "Ziggo (VodafoneZiggo)", "NL"),
    IspRecord(31615, "Odido (T-Mobile NL)", "NL"),
    IspRecord(20857, "TransIP", "NL"),
    # Germany
    IspRecord(3320, "Deutsche Telekom", "DE"),
    IspRecord(3209, "Vodafone Germany", "DE"),
    IspRecord(8560, "1&1 / IONOS", "DE"),
    IspRecord(6805, "Telefonica Germany (O2)", "DE"),
    # Belgium
    IspRecord(5432, "Proximus", "BE"),
    IspRecord(6848, "Telenet", "BE"),
    IspRecord(47377, "Orange Belgium", "BE"),
    IspRecord(12392, "VOO", "BE"),
    # Luxembourg
    IspRecord(6661, "POST Luxembourg", "LU"),
    IspRecord(56665, "Tango (Proximus LU)", "LU"),
    IspRecord(34769, "Orange Luxembourg", "LU"),
    # France
    IspRecord(3215, "Orange France", "FR"),
    IspRecord(12322, "Free (Iliad)", "FR"),
    IspRecord(15557, "SFR", "FR"),
    IspRecord(5410, "Bouygues Telecom", "FR"),
)

UNKNOWN_COUNTRY = "unknown"


def find_isp(asn, isps=ISP_LIST):
    for isp in isps:
        if isp.asn == asn:
            return isp
    return None

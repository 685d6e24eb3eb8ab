"""Exceptions raised by the peering monitor."""


class PeeringMonitorError(Exception):
    pass


class UpstreamError(PeeringMonitorError):
    """A required upstream (the BGP table) could not be fetched."""

    def __init__(self, source, status=None, excerpt=""):
        self.source = source
        self.status = status
        self.excerpt = excerpt
        if status is None:
            message = f"{source} request failed: {excerpt}"
        else:
            message = f"{source} returned {status}: {excerpt}"
        super().__init__(message)


class InvalidAsnError(PeeringMonitorError, ValueError):
    def __init__(self, value):
        self.value = value
        super().__init__("Invalid ASN")

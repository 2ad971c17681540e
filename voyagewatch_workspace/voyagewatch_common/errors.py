"""
VoyageWatch — Error Taxonomy

ValidationError     malformed / missing input, rejected before side effects
NotFoundError       voyage or vessel absent, fatal to a cost analysis
UpstreamUnavailable weather fetch failed or timed out, callers degrade
PersistenceError    alert store write failed, logged and skipped
PushError           push channel emit failed, logged and skipped
"""


class VoyageWatchError(Exception):
    """Base class for every error raised by the VoyageWatch core."""


class ValidationError(VoyageWatchError):
    pass


class NotFoundError(VoyageWatchError):
    pass


class UpstreamUnavailable(VoyageWatchError):
    pass


class PersistenceError(VoyageWatchError):
    pass


class PushError(VoyageWatchError):
    pass

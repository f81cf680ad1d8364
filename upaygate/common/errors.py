"""Gateway exception taxonomy.

Raised by the service layer and mapped to HTTP responses at the route
boundary. A failed signature check is not an error: `verify` returns False.
"""


class GatewayError(Exception):
    """Base class for per-request gateway failures."""


class ClientError(GatewayError):
    """The caller sent something the gateway cannot act on (HTTP 400)."""


class MissingIdentity(ClientError):
    """No client network identity header on a create-order request."""


class MalformedNotification(ClientError):
    """Notification body is not a flat JSON object of scalars."""


class RateLimited(GatewayError):
    """Client identity exceeded its order-creation budget for the window."""

    def __init__(self, identity: str) -> None:
        super().__init__(f"rate limit exceeded for {identity}")
        self.identity = identity


class UpstreamRejected(GatewayError):
    """Upstream did not accept the order (non-success code or transport failure)."""

    def __init__(self, reason: str, code: int | None = None) -> None:
        super().__init__(reason)
        self.reason = reason
        self.code = code


class UpstreamTimeout(UpstreamRejected):
    """Upstream call did not finish within the request deadline."""

    def __init__(self, reason: str = "upstream timeout") -> None:
        super().__init__(reason)


class CounterStoreError(GatewayError):
    """Backing counter store unavailable; the rate limiter fails open on this."""

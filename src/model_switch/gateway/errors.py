"""Error types for the gateway.

Everything raised while handling a single request derives from GatewayError
and is turned into the same 502 envelope by the forwarding pipeline:

    {"error": {"type": "proxy_error", "message": "..."}}
"""

from __future__ import annotations

from typing import Any

PROXY_ERROR_TYPE = "proxy_error"
PROXY_ERROR_STATUS = 502


class GatewayError(Exception):
    """A request could not be forwarded."""

    pass


class RouteError(GatewayError):
    """No provider could be resolved for the request path."""

    pass


class MissingProviderSegment(RouteError):
    def __init__(self, path: str):
        self.path = path
        super().__init__(
            f"Missing provider name in override path '{path}' (expected /p/<provider>/...)"
        )


class UnknownProvider(RouteError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Provider '{name}' not found in profiles")


class NoActiveProvider(RouteError):
    def __init__(self, active: str):
        self.active = active
        super().__init__(f"No active provider configured: '{active}' not found in profiles")


class UpstreamUnreachable(GatewayError):
    def __init__(self, url: str, reason: str):
        self.url = url
        super().__init__(f"Failed to reach upstream: {url}: {reason}")


class BodyReadError(GatewayError):
    """The inbound request body could not be read."""

    pass


class SerializationError(GatewayError):
    """A rewritten request body could not be serialized."""

    pass


def error_body(message: str) -> dict[str, Any]:
    """Build the JSON error envelope."""
    return {"error": {"type": PROXY_ERROR_TYPE, "message": message}}

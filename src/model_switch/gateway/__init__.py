"""Model-switching gateway.

Accepts Anthropic API traffic from Claude Code and forwards it to the
active (or explicitly addressed) provider, rewriting model ids per tier.

Components:
- routing: picks provider and upstream path for a request path
- rewrite: maps Claude model ids onto the provider's models
- store: live profiles with hot reload
- proxy: aiohttp server that ties it together

Usage:
    from model_switch.core.config import ProfileConfig
    from model_switch.gateway import ConfigStore, GatewayConfig, GatewayServer
    import asyncio

    store = ConfigStore.open(ProfileConfig.load)
    server = GatewayServer(config=GatewayConfig(port=4000), store=store)
    asyncio.run(server.serve())
"""

from model_switch.gateway.errors import (
    BodyReadError,
    GatewayError,
    MissingProviderSegment,
    NoActiveProvider,
    RouteError,
    SerializationError,
    UnknownProvider,
    UpstreamUnreachable,
)
from model_switch.gateway.proxy import PROVIDER_HEADER, GatewayConfig, GatewayServer
from model_switch.gateway.rewrite import ModelTier, classify_model, rewrite_model
from model_switch.gateway.routing import RouteResolution, resolve_route
from model_switch.gateway.store import ConfigStore

__all__ = [
    "PROVIDER_HEADER",
    "BodyReadError",
    "ConfigStore",
    "GatewayConfig",
    "GatewayError",
    "GatewayServer",
    "MissingProviderSegment",
    "ModelTier",
    "NoActiveProvider",
    "RouteError",
    "RouteResolution",
    "SerializationError",
    "UnknownProvider",
    "UpstreamUnreachable",
    "classify_model",
    "resolve_route",
    "rewrite_model",
]

"""Route resolution: which provider serves a request, and at which path.

Two shapes are recognised:

    /p/<provider>/<rest>   explicit provider, upstream path /<rest>
    anything else          active provider, path unchanged
"""

from __future__ import annotations

from dataclasses import dataclass

from model_switch.core.config import ProfileConfig, Provider
from model_switch.gateway.errors import MissingProviderSegment, NoActiveProvider, UnknownProvider

OVERRIDE_PREFIX = "/p/"


@dataclass(frozen=True)
class RouteResolution:
    """Where a single request goes.

    Attributes:
        provider_name: Name of the resolved provider.
        provider: The provider value taken from the snapshot.
        upstream_path: Path to call relative to the provider's base_url.
    """

    provider_name: str
    provider: Provider
    upstream_path: str


def resolve_route(path: str, config: ProfileConfig) -> RouteResolution:
    """Resolve ``path`` against a config snapshot.

    Raises:
        MissingProviderSegment: ``/p/`` with an empty provider name.
        UnknownProvider: Override names a provider that does not exist.
        NoActiveProvider: No override and the active provider does not exist.
    """
    if path.startswith(OVERRIDE_PREFIX):
        name, _, rest = path[len(OVERRIDE_PREFIX) :].partition("/")
        if not name:
            raise MissingProviderSegment(path)
        provider = config.providers.get(name)
        if provider is None:
            raise UnknownProvider(name)
        return RouteResolution(name, provider, "/" + rest)

    provider = config.providers.get(config.active)
    if provider is None:
        raise NoActiveProvider(config.active)
    return RouteResolution(config.active, provider, path)

"""Profile editing operations behind the CLI commands.

Each function takes a ProfileConfig and returns the updated snapshot; saving
and notifying the gateway is left to the caller.
"""

from __future__ import annotations

from dataclasses import dataclass

from model_switch.core.config import DEFAULT_PROVIDER, ModelMapping, ProfileConfig, Provider
from model_switch.core.registry import parse_credential, preset_base_url, preset_models

PROG = "claude-model-switch"


class ProfileError(Exception):
    """A profile edit was rejected."""

    pass


@dataclass
class AddResult:
    """Outcome of add_provider, used to explain what happened."""

    config: ProfileConfig
    name: str
    updated: bool
    base_url_source: str  # "explicit", "existing" or "preset"

    @property
    def provider(self) -> Provider:
        return self.config.providers[self.name]


def use_provider(config: ProfileConfig, name: str) -> ProfileConfig:
    if name not in config.providers:
        raise ProfileError(
            f"Unknown provider '{name}'. Run '{PROG} list' to see available providers.\n"
            f"To add a new provider: {PROG} add {name} <base-url> <api-key>\n"
            f"Or for built-in presets: {PROG} add {name} <api-key>"
        )
    return config.with_active(name)


def setup_credentials(
    config: ProfileConfig,
    name: str,
    api_key: str | None = None,
    auth_token: str | None = None,
) -> ProfileConfig:
    if api_key is None and auth_token is None:
        raise ProfileError("Provide --api-key or --auth-token")
    existing = config.providers.get(name)
    if existing is None:
        raise ProfileError(
            f"Unknown provider '{name}'. "
            f"Add it first with: {PROG} add {name} <base-url> <api-key>\n"
            f"Or for built-in presets: {PROG} add {name} <api-key>"
        )
    updated = Provider(
        base_url=existing.base_url,
        api_key=api_key if api_key is not None else existing.api_key,
        auth_token=auth_token if auth_token is not None else existing.auth_token,
        models=existing.models,
    )
    return config.with_provider(name, updated)


def _split_positionals(
    input1: str | None, input2: str | None
) -> tuple[str | None, str | None]:
    """(base_url, credential) from the positional shorthand."""
    if input1 is not None and input2 is not None:
        return input1, input2
    if input1 is not None:
        if input1.startswith(("http://", "https://")):
            return input1, None
        return None, input1
    return None, None


def add_provider(
    config: ProfileConfig,
    name: str,
    input1: str | None = None,
    input2: str | None = None,
    base_url: str | None = None,
    haiku: str | None = None,
    sonnet: str | None = None,
    opus: str | None = None,
    api_key: str | None = None,
    auth_token: str | None = None,
) -> AddResult:
    """Add a provider, or update one in place.

    Supports ``add <name> <credential>`` for presets and
    ``add <name> <base-url> <credential>``. Values not given are taken from
    the existing entry, then from the built-in catalogue.
    """
    positional_url, positional_credential = _split_positionals(input1, input2)

    if positional_url is not None and base_url is not None:
        raise ProfileError(
            "Provide base URL either positionally (`add <name> <base-url> <api-key>`) "
            "or with --base-url, not both"
        )

    if positional_credential is not None:
        if api_key is not None or auth_token is not None:
            raise ProfileError(
                "Use either positional credential (`add <name> [<base-url>] <credential>`) "
                "or --api-key/--auth-token flags, not both"
            )
        try:
            api_key, auth_token = parse_credential(positional_credential)
        except ValueError as e:
            raise ProfileError(str(e)) from e

    existing = config.providers.get(name)

    resolved_url = base_url or positional_url
    source = "explicit"
    if resolved_url is None:
        if existing is not None:
            resolved_url, source = existing.base_url, "existing"
        else:
            resolved_url, source = preset_base_url(name), "preset"
        if resolved_url is None:
            raise ProfileError(
                f"Missing base URL for provider '{name}'. "
                f"Use: {PROG} add {name} <base-url> <api-key>\n"
                f"Or for built-in presets: {PROG} add {name} <api-key>"
            )

    tiers = (haiku, sonnet, opus)
    models: ModelMapping | None
    if all(t is not None for t in tiers):
        models = ModelMapping(haiku=haiku, sonnet=sonnet, opus=opus)  # type: ignore[arg-type]
    elif any(t is not None for t in tiers):
        raise ProfileError(
            "If you provide model mappings, pass all three flags: "
            "--haiku <model> --sonnet <model> --opus <model>"
        )
    elif existing is not None:
        models = existing.models
    else:
        models = preset_models(name)

    provider = Provider(
        base_url=resolved_url,
        api_key=api_key if api_key is not None else getattr(existing, "api_key", None),
        auth_token=auth_token if auth_token is not None else getattr(existing, "auth_token", None),
        models=models,
    )
    return AddResult(
        config=config.with_provider(name, provider),
        name=name,
        updated=existing is not None,
        base_url_source=source,
    )


def remove_provider(config: ProfileConfig, name: str) -> tuple[ProfileConfig, bool]:
    """Remove a provider.

    Returns:
        (new_config, active_reset) where active_reset tells whether the
        active provider fell back to the default.
    """
    if name == DEFAULT_PROVIDER:
        raise ProfileError(f"Cannot remove the default '{DEFAULT_PROVIDER}' provider.")
    if name not in config.providers:
        raise ProfileError(f"Provider '{name}' not found.")
    updated = config.without_provider(name)
    if config.active == name:
        return updated.with_active(DEFAULT_PROVIDER), True
    return updated, False


def describe_models(provider: Provider) -> str:
    if provider.models is None:
        return "(passthrough)"
    m = provider.models
    return f"{m.haiku} / {m.sonnet} / {m.opus}"


def format_list(config: ProfileConfig) -> list[str]:
    lines = ["Available providers:"]
    for name in sorted(config.providers):
        provider = config.providers[name]
        marker = " (active)" if name == config.active else ""
        lines.append(f"  {name}{marker} - {provider.base_url} [{describe_models(provider)}]")
    return lines

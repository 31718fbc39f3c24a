"""Provider profiles - the registry the gateway routes against.

A ProfileConfig is an immutable snapshot: the name of the active provider
plus every configured Provider keyed by name. Changes are made by building
a new snapshot (with_provider, without_provider, with_active) and saving it;
the running gateway picks the new file up on reload.

On disk the profiles live in ``~/.claude/model-profiles.json``::

    {
      "active": "glm",
      "providers": {
        "claude": {"base_url": "https://api.anthropic.com"},
        "glm": {
          "base_url": "https://open.z.ai/api/paas/v4",
          "api_key": "sk-...",
          "models": {"haiku": "glm-4.5-air", "sonnet": "glm-4.7", "opus": "glm-4.7"}
        }
      }
    }
"""

from __future__ import annotations

import json
import os
import tempfile
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any

CONFIG_ENV_VAR = "CLAUDE_MODEL_SWITCH_CONFIG"
DEFAULT_PROVIDER = "claude"
ANTHROPIC_BASE_URL = "https://api.anthropic.com"


class ConfigError(Exception):
    """Profiles could not be read, parsed, or looked up."""

    pass


def config_path() -> Path:
    """Location of the profiles file (env override > ~/.claude)."""
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".claude" / "model-profiles.json"


@dataclass(frozen=True)
class ModelMapping:
    """Target model for each Claude tier.

    Attributes:
        haiku: Model used for low-tier requests.
        sonnet: Model used for mid-tier requests.
        opus: Model used for high-tier requests.
    """

    haiku: str
    sonnet: str
    opus: str

    def to_dict(self) -> dict[str, str]:
        return {"haiku": self.haiku, "sonnet": self.sonnet, "opus": self.opus}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ModelMapping:
        return cls(
            haiku=_require_str(data, "haiku"),
            sonnet=_require_str(data, "sonnet"),
            opus=_require_str(data, "opus"),
        )


@dataclass(frozen=True)
class Provider:
    """An upstream Anthropic-compatible endpoint.

    A provider without ``models`` is a passthrough provider: model ids are
    forwarded untouched.

    Attributes:
        base_url: Upstream base URL, e.g. "https://open.z.ai/api/paas/v4".
        api_key: Sent as x-api-key and as a bearer token.
        auth_token: Sent as a bearer token; wins over api_key for Authorization.
        models: Optional tier mapping.
    """

    base_url: str
    api_key: str | None = None
    auth_token: str | None = None
    models: ModelMapping | None = None

    @property
    def has_credentials(self) -> bool:
        """Whether the provider brings its own credentials."""
        return self.api_key is not None or self.auth_token is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "base_url": self.base_url,
            "api_key": self.api_key,
            "auth_token": self.auth_token,
            "models": self.models.to_dict() if self.models else None,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Provider:
        models = data.get("models")
        if models is not None and not isinstance(models, Mapping):
            raise ValueError("'models' must be an object")
        return cls(
            base_url=_require_str(data, "base_url"),
            api_key=_optional_str(data, "api_key"),
            auth_token=_optional_str(data, "auth_token"),
            models=ModelMapping.from_dict(models) if models is not None else None,
        )


@dataclass(frozen=True)
class ProfileConfig:
    """Immutable snapshot of every provider plus the active selection.

    ``active`` is not checked against ``providers`` here; a
    stale name only matters once a request needs the active provider.
    """

    active: str
    providers: Mapping[str, Provider] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "providers", MappingProxyType(dict(self.providers)))

    @classmethod
    def default(cls) -> ProfileConfig:
        """Config used when no profiles file exists yet."""
        return cls(
            active=DEFAULT_PROVIDER,
            providers={DEFAULT_PROVIDER: Provider(base_url=ANTHROPIC_BASE_URL)},
        )

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def active_provider(self) -> Provider:
        provider = self.providers.get(self.active)
        if provider is None:
            raise ConfigError(f"Active provider '{self.active}' not found in profiles")
        return provider

    def provider(self, name: str) -> Provider:
        provider = self.providers.get(name)
        if provider is None:
            raise ConfigError(f"Provider '{name}' not found in profiles")
        return provider

    # ------------------------------------------------------------------
    # Copy-on-write updates
    # ------------------------------------------------------------------

    def with_active(self, name: str) -> ProfileConfig:
        return ProfileConfig(active=name, providers=self.providers)

    def with_provider(self, name: str, provider: Provider) -> ProfileConfig:
        providers = dict(self.providers)
        providers[name] = provider
        return ProfileConfig(active=self.active, providers=providers)

    def without_provider(self, name: str) -> ProfileConfig:
        providers = {k: v for k, v in self.providers.items() if k != name}
        return ProfileConfig(active=self.active, providers=providers)

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return {
            "active": self.active,
            "providers": {name: p.to_dict() for name, p in self.providers.items()},
        }

    @classmethod
    def from_dict(cls, data: Any) -> ProfileConfig:
        """Build a snapshot from parsed JSON.

        Raises:
            ValueError: If the document does not have the expected shape.
        """
        if not isinstance(data, Mapping):
            raise ValueError("top level must be an object")
        providers = data.get("providers")
        if not isinstance(providers, Mapping):
            raise ValueError("'providers' must be an object")

        parsed: dict[str, Provider] = {}
        for name, entry in providers.items():
            if not isinstance(entry, Mapping):
                raise ValueError(f"provider '{name}' must be an object")
            try:
                parsed[name] = Provider.from_dict(entry)
            except ValueError as e:
                raise ValueError(f"provider '{name}': {e}") from e

        return cls(active=_require_str(data, "active"), providers=parsed)

    @classmethod
    def load(cls, path: Path | None = None) -> ProfileConfig:
        """Read the profiles file.

        A missing file yields ProfileConfig.default().

        Raises:
            ConfigError: If the file cannot be read or parsed.
        """
        path = path or config_path()
        if not path.exists():
            return cls.default()
        try:
            content = path.read_text()
        except (OSError, UnicodeDecodeError) as e:
            raise ConfigError(f"Failed to read {path}: {e}") from e
        try:
            return cls.from_dict(json.loads(content))
        except ValueError as e:
            raise ConfigError(f"Failed to parse {path}: {e}") from e

    def save(self, path: Path | None = None) -> Path:
        """Write the profiles file atomically (temp file + rename)."""
        path = path or config_path()
        path.parent.mkdir(parents=True, exist_ok=True)
        content = json.dumps(self.to_dict(), indent=2)

        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
        try:
            with os.fdopen(fd, "w") as f:
                f.write(content)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        return path


def _require_str(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str):
        raise ValueError(f"'{key}' must be a string")
    return value


def _optional_str(data: Mapping[str, Any], key: str) -> str | None:
    value = data.get(key)
    if value is not None and not isinstance(value, str):
        raise ValueError(f"'{key}' must be a string or null")
    return value

"""Model id rewriting.

Claude Code asks for models like ``claude-sonnet-4-20250514``. For a
provider with a tier mapping the tier is recognised from the id and swapped
for the provider's own model; everything else passes through untouched.
"""

from __future__ import annotations

import json
from enum import Enum

from model_switch.core.config import ModelMapping, Provider
from model_switch.gateway.errors import SerializationError


class ModelTier(Enum):
    """Claude model tiers, in classification priority order."""

    HAIKU = "haiku"
    SONNET = "sonnet"
    OPUS = "opus"

    def target(self, mapping: ModelMapping) -> str:
        return getattr(mapping, self.value)


def classify_model(model: str) -> ModelTier | None:
    """Tier named in a model id.

    Matching is a case-insensitive substring test in enum order, so an id
    naming several tiers resolves to the first of haiku, sonnet, opus.
    """
    lower = model.lower()
    for tier in ModelTier:
        if tier.value in lower:
            return tier
    return None


def rewrite_model(model: str, provider: Provider) -> str:
    """Model id to send upstream for ``provider``."""
    if provider.models is None:
        return model
    tier = classify_model(model)
    if tier is None:
        return model
    return tier.target(provider.models)


def rewrite_body(body: bytes, provider: Provider) -> tuple[bytes, str | None, str | None]:
    """Rewrite the ``model`` field of a JSON request body.

    Returns (body, original_model, upstream_model). Bodies that are empty,
    not JSON, not a JSON object, or lack a string ``model`` come back
    unchanged with both models None, as do documents nested too deeply to
    decode. When the model is not rewritten the
    original bytes are returned as-is.

    Raises:
        SerializationError: If the rewritten document cannot be encoded.
    """
    if not body:
        return body, None, None
    try:
        data = json.loads(body)
    except (ValueError, RecursionError):
        # Too deeply nested to decode counts as unparseable
        return body, None, None
    if not isinstance(data, dict):
        return body, None, None
    model = data.get("model")
    if not isinstance(model, str):
        return body, None, None

    upstream_model = rewrite_model(model, provider)
    if upstream_model == model:
        return body, model, upstream_model

    data["model"] = upstream_model
    try:
        encoded = json.dumps(data, ensure_ascii=False, separators=(",", ":")).encode("utf-8")
    except (TypeError, ValueError) as e:
        raise SerializationError(f"Failed to serialize rewritten request body: {e}") from e
    return encoded, model, upstream_model

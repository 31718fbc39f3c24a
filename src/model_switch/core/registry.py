"""Built-in provider catalogue and credential helpers.

Known Anthropic-compatible endpoints, so users can add a provider with just
an API key (``claude-model-switch add glm sk-...``).
"""

from __future__ import annotations

from model_switch.core.config import ANTHROPIC_BASE_URL, ModelMapping, Provider

ZAI_BASE_URL = "https://open.z.ai/api/paas/v4"
MINIMAX_BASE_URL = "https://api.minimax.io/anthropic/v1"
OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"

# Base URLs applied by `add <name> <credential>` when no URL is given
PRESET_BASE_URLS = {
    "glm": ZAI_BASE_URL,
    "openrouter": OPENROUTER_BASE_URL,
    "minimax": MINIMAX_BASE_URL,
}

BEARER_PREFIX = "bearer:"


def builtin_providers() -> dict[str, Provider]:
    """Catalogue of ready-made providers (without credentials)."""
    return {
        "claude": Provider(base_url=ANTHROPIC_BASE_URL),
        "glm": Provider(
            base_url=ZAI_BASE_URL,
            models=ModelMapping(haiku="glm-4.5-air", sonnet="glm-4.7", opus="glm-4.7"),
        ),
        "glm-flash": Provider(
            base_url=ZAI_BASE_URL,
            models=ModelMapping(
                haiku="glm-4.7-flashx", sonnet="glm-4.7-flashx", opus="glm-4.7-flashx"
            ),
        ),
        "glm-5": Provider(
            base_url=ZAI_BASE_URL,
            models=ModelMapping(haiku="glm-4.7-flashx", sonnet="glm-5-code", opus="glm-5"),
        ),
        "minimax": Provider(
            base_url=MINIMAX_BASE_URL,
            models=ModelMapping(haiku="MiniMax-M2", sonnet="MiniMax-M2.5", opus="MiniMax-M2.5"),
        ),
        "minimax-fast": Provider(
            base_url=MINIMAX_BASE_URL,
            models=ModelMapping(
                haiku="MiniMax-M2", sonnet="MiniMax-M2.5-Lightning", opus="MiniMax-M2.5"
            ),
        ),
    }


def preset_base_url(name: str) -> str | None:
    """Known base URL for a provider name, matched case-insensitively."""
    lower = name.lower()
    if lower in PRESET_BASE_URLS:
        return PRESET_BASE_URLS[lower]
    builtin = builtin_providers().get(lower)
    return builtin.base_url if builtin else None


def preset_models(name: str) -> ModelMapping | None:
    """Tier mapping of a catalogue provider, if any."""
    builtin = builtin_providers().get(name.lower())
    return builtin.models if builtin else None


def parse_credential(credential: str) -> tuple[str | None, str | None]:
    """Split a positional credential into (api_key, auth_token).

    ``bearer:<token>`` selects an auth token; anything else is an API key.

    Raises:
        ValueError: If a bearer credential has no token.
    """
    if credential.lower().startswith(BEARER_PREFIX):
        token = credential.split(":", 1)[1].strip()
        if not token:
            raise ValueError("Bearer credential cannot be empty. Use: add <name> bearer:<token>")
        return None, token
    return credential, None

"""Pytest configuration and fixtures."""

import pytest

from model_switch.core.config import ModelMapping, ProfileConfig, Provider


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """Keep every test away from the real ~/.claude."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.delenv("CLAUDE_MODEL_SWITCH_CONFIG", raising=False)
    monkeypatch.delenv("CLAUDE_MODEL_SWITCH_PID_FILE", raising=False)
    return home


@pytest.fixture
def glm_provider():
    """Provider with a tier mapping and an API key."""
    return Provider(
        base_url="https://open.z.ai/api/paas/v4",
        api_key="sk-test",
        models=ModelMapping(haiku="glm-4.5-air", sonnet="glm-4.7", opus="glm-4.7"),
    )


@pytest.fixture
def passthrough_provider():
    """Provider without mapping or credentials."""
    return Provider(base_url="https://api.anthropic.com")


@pytest.fixture
def profile_config(glm_provider, passthrough_provider):
    """Two providers, claude active."""
    return ProfileConfig(
        active="claude",
        providers={"claude": passthrough_provider, "glm": glm_provider},
    )

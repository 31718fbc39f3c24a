"""Tests for the built-in provider catalogue."""

import pytest

from model_switch.core.registry import (
    MINIMAX_BASE_URL,
    OPENROUTER_BASE_URL,
    ZAI_BASE_URL,
    builtin_providers,
    parse_credential,
    preset_base_url,
    preset_models,
)


class TestPresets:
    @pytest.mark.parametrize(
        ("name", "url"),
        [
            ("glm", ZAI_BASE_URL),
            ("GLM", ZAI_BASE_URL),
            ("openrouter", OPENROUTER_BASE_URL),
            ("minimax", MINIMAX_BASE_URL),
            ("glm-5", ZAI_BASE_URL),
            ("minimax-fast", MINIMAX_BASE_URL),
        ],
    )
    def test_preset_base_url(self, name, url):
        assert preset_base_url(name) == url

    def test_unknown_preset(self):
        assert preset_base_url("my-own") is None
        assert preset_models("my-own") is None

    def test_preset_models(self):
        models = preset_models("glm")
        assert (models.haiku, models.sonnet, models.opus) == ("glm-4.5-air", "glm-4.7", "glm-4.7")

    def test_openrouter_has_no_mapping(self):
        assert preset_models("openrouter") is None

    def test_catalogue_has_no_credentials(self):
        catalogue = builtin_providers()
        assert "claude" in catalogue
        assert catalogue["claude"].models is None
        assert not any(p.has_credentials for p in catalogue.values())


class TestParseCredential:
    def test_plain_api_key(self):
        assert parse_credential("sk-123") == ("sk-123", None)

    @pytest.mark.parametrize("credential", ["bearer:tok", "Bearer:tok", "BEARER: tok "])
    def test_bearer_prefix(self, credential):
        assert parse_credential(credential) == (None, "tok")

    @pytest.mark.parametrize("credential", ["bearer:", "bearer:   "])
    def test_empty_bearer(self, credential):
        with pytest.raises(ValueError, match="cannot be empty"):
            parse_credential(credential)

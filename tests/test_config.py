from __future__ import annotations

import pytest

from deep_research.config import Settings, resolve_config


@pytest.fixture
def env_settings() -> Settings:
    return Settings(
        _env_file=None,
        exa_api_key="env-exa",
        firecrawl_api_key="",
        perplexity_api_key="",
        exa_timeout_s=30,
    )


def test_plugin_config_overrides_environment(env_settings):
    config = resolve_config({"exaApiKey": "cfg-exa", "perplexityApiKey": "cfg-pp"}, env_settings)

    assert config.exa_api_key == "cfg-exa"
    assert config.key_source("exaApiKey") == "config"
    assert config.perplexity_api_key == "cfg-pp"
    assert config.services == {"exa": True, "firecrawl": False, "perplexity": True}
    assert not config.all_configured


def test_environment_is_the_fallback(env_settings):
    config = resolve_config({}, env_settings)

    assert config.exa_api_key == "env-exa"
    assert config.key_source("exaApiKey") == "env"
    assert config.key_source("firecrawlApiKey") is None


def test_blank_config_values_do_not_shadow_environment(env_settings):
    config = resolve_config({"exaApiKey": "   "}, env_settings)

    assert config.exa_api_key == "env-exa"
    assert config.key_source("exaApiKey") == "env"


def test_missing_keys_name_config_field_and_env_var(env_settings):
    config = resolve_config({}, env_settings)

    assert config.missing_keys() == [
        "firecrawlApiKey (or env FIRECRAWL_API_KEY)",
        "perplexityApiKey (or env PERPLEXITY_API_KEY)",
    ]


def test_defaults_and_timeouts(env_settings):
    config = resolve_config({"defaultNumResults": 7, "defaultLanguage": "uk"}, env_settings)

    assert config.default_num_results == 7
    assert config.default_language == "uk"
    assert config.timeouts.exa == 30
    assert config.timeouts.perplexity == 180


def test_settings_defaults():
    settings = Settings(_env_file=None)

    assert settings.default_num_results == 20
    assert settings.default_language == "en"
    assert settings.cors_origin_list == ["http://localhost:3000"]

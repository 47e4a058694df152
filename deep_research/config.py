from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

from pydantic_settings import BaseSettings

KeySource = Literal["config", "env"]

# Plugin config key -> environment variable, in provider order.
API_KEY_FIELDS: dict[str, str] = {
    "exaApiKey": "EXA_API_KEY",
    "firecrawlApiKey": "FIRECRAWL_API_KEY",
    "perplexityApiKey": "PERPLEXITY_API_KEY",
}


class Settings(BaseSettings):
    # Provider credentials (optional: a missing key degrades that provider only)
    exa_api_key: str = ""
    firecrawl_api_key: str = ""
    perplexity_api_key: str = ""

    # Research defaults
    default_num_results: int = 20
    default_language: str = "en"

    # Per-provider time budgets for one parallel round
    exa_timeout_s: float = 120.0
    firecrawl_timeout_s: float = 120.0
    perplexity_timeout_s: float = 180.0
    http_timeout_s: float = 170.0

    # App
    cors_origins: str = "http://localhost:3000"
    app_log_level: str = "INFO"
    noisy_log_level: str = "WARNING"
    log_dir: str = "logs"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",")]


@dataclass(frozen=True, slots=True)
class ProviderTimeouts:
    exa: float = 120.0
    firecrawl: float = 120.0
    perplexity: float = 180.0


@dataclass(frozen=True, slots=True)
class PluginConfig:
    """Read-only configuration resolved once when the plugin loads."""

    exa_api_key: str
    firecrawl_api_key: str
    perplexity_api_key: str
    default_num_results: int = 20
    default_language: str = "en"
    timeouts: ProviderTimeouts = ProviderTimeouts()
    http_timeout_s: float = 170.0
    key_sources: tuple[tuple[str, KeySource | None], ...] = ()

    @property
    def services(self) -> dict[str, bool]:
        return {
            "exa": bool(self.exa_api_key),
            "firecrawl": bool(self.firecrawl_api_key),
            "perplexity": bool(self.perplexity_api_key),
        }

    @property
    def all_configured(self) -> bool:
        return all(self.services.values())

    def key_source(self, field: str) -> KeySource | None:
        return dict(self.key_sources).get(field)

    def missing_keys(self) -> list[str]:
        return [
            f"{field} (or env {env_name})"
            for field, env_name in API_KEY_FIELDS.items()
            if self.key_source(field) is None
        ]


def resolve_config(
    plugin_config: dict[str, Any] | None = None,
    settings: Settings | None = None,
) -> PluginConfig:
    """Merge host plugin config over environment settings.

    Keys given in the plugin config win; the environment is the fallback.
    """
    plugin_config = plugin_config or {}
    settings = settings or Settings()

    env_values = {
        "exaApiKey": settings.exa_api_key,
        "firecrawlApiKey": settings.firecrawl_api_key,
        "perplexityApiKey": settings.perplexity_api_key,
    }

    keys: dict[str, str] = {}
    sources: list[tuple[str, KeySource | None]] = []
    for field in API_KEY_FIELDS:
        configured = str(plugin_config.get(field) or "").strip()
        from_env = (env_values[field] or "").strip()
        if configured:
            keys[field] = configured
            sources.append((field, "config"))
        elif from_env:
            keys[field] = from_env
            sources.append((field, "env"))
        else:
            keys[field] = ""
            sources.append((field, None))

    num_results = plugin_config.get("defaultNumResults")
    language = plugin_config.get("defaultLanguage")

    return PluginConfig(
        exa_api_key=keys["exaApiKey"],
        firecrawl_api_key=keys["firecrawlApiKey"],
        perplexity_api_key=keys["perplexityApiKey"],
        default_num_results=int(num_results) if num_results is not None else settings.default_num_results,
        default_language=str(language) if language else settings.default_language,
        timeouts=ProviderTimeouts(
            exa=settings.exa_timeout_s,
            firecrawl=settings.firecrawl_timeout_s,
            perplexity=settings.perplexity_timeout_s,
        ),
        http_timeout_s=settings.http_timeout_s,
        key_sources=tuple(sources),
    )

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from deep_research.config import PluginConfig, ProviderTimeouts
from deep_research.tools.exa import ExaResult, ExaSearchResponse
from deep_research.tools.firecrawl import FirecrawlSearchItem
from deep_research.tools.perplexity import PerplexityAnswer, PerplexityCitation
from deep_research.workflows.common import ResearchContext


def exa_response(*urls: str, text: str = "exa text") -> ExaSearchResponse:
    return ExaSearchResponse(
        results=[ExaResult(url=u, title=f"Exa {u}", text=text, highlights=[f"highlight {u}"]) for u in urls]
    )


def firecrawl_items(*urls: str) -> list[FirecrawlSearchItem]:
    return [FirecrawlSearchItem(url=u, title=f"Firecrawl {u}", description=f"about {u}") for u in urls]


def perplexity_answer(text: str, *urls: str) -> PerplexityAnswer:
    return PerplexityAnswer(
        text=text,
        citations=[PerplexityCitation(url=u, title=f"Cited {u}", snippet=f"cited {u}") for u in urls],
    )


@pytest.fixture
def plugin_config() -> PluginConfig:
    return PluginConfig(
        exa_api_key="exa-key",
        firecrawl_api_key="fc-key",
        perplexity_api_key="pp-key",
        timeouts=ProviderTimeouts(exa=1.0, firecrawl=1.0, perplexity=1.0),
        key_sources=(("exaApiKey", "config"), ("firecrawlApiKey", "env"), ("perplexityApiKey", "config")),
    )


@pytest.fixture
def providers():
    exa = MagicMock()
    exa.search = AsyncMock(return_value=ExaSearchResponse())
    exa.find_similar = AsyncMock(return_value=ExaSearchResponse())
    exa.get_contents = AsyncMock(return_value=ExaSearchResponse())

    firecrawl = MagicMock()
    firecrawl.search = AsyncMock(return_value=[])
    firecrawl.scrape = AsyncMock()
    firecrawl.map = AsyncMock(return_value=[])
    firecrawl.extract = AsyncMock()

    perplexity = MagicMock()
    perplexity.search = AsyncMock(return_value=PerplexityAnswer())
    perplexity.deep_research = AsyncMock(return_value=PerplexityAnswer())
    perplexity.fast_search = AsyncMock(return_value=PerplexityAnswer())
    return exa, firecrawl, perplexity


@pytest.fixture
def ctx(providers, plugin_config) -> ResearchContext:
    exa, firecrawl, perplexity = providers
    return ResearchContext(exa=exa, firecrawl=firecrawl, perplexity=perplexity, config=plugin_config)

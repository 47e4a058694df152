"""Capabilities the workflows require from each provider.

Exa and Firecrawl cover more than search; Perplexity only answers queries.
Workflows depend on these protocols, not on the concrete HTTP clients.
"""
from __future__ import annotations

from typing import Any, Protocol

from deep_research.tools.exa import ExaSearchResponse
from deep_research.tools.firecrawl import (
    FirecrawlExtractResponse,
    FirecrawlMapLink,
    FirecrawlScrapeData,
    FirecrawlSearchItem,
)
from deep_research.tools.perplexity import PerplexityAnswer


class NeuralSearchProvider(Protocol):
    async def search(self, query: str, **options: Any) -> ExaSearchResponse: ...

    async def find_similar(self, url: str, **options: Any) -> ExaSearchResponse: ...

    async def get_contents(self, urls: list[str], **options: Any) -> ExaSearchResponse: ...


class CrawlProvider(Protocol):
    async def search(self, query: str, **options: Any) -> list[FirecrawlSearchItem]: ...

    async def scrape(self, url: str, **options: Any) -> FirecrawlScrapeData: ...

    async def map(self, url: str, **options: Any) -> list[FirecrawlMapLink]: ...

    async def extract(self, urls: list[str], **options: Any) -> FirecrawlExtractResponse: ...


class AnswerProvider(Protocol):
    async def search(self, query: str, **options: Any) -> PerplexityAnswer: ...

    async def deep_research(self, query: str, **options: Any) -> PerplexityAnswer: ...

    async def fast_search(self, query: str, **options: Any) -> PerplexityAnswer: ...

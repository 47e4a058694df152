from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

from deep_research.tools.base import ProviderClient

PERPLEXITY_BASE_URL = "https://api.perplexity.ai"

Preset = Literal["fast-search", "pro-search", "deep-research"]
Recency = Literal["day", "week", "month", "year"]


class PerplexityCitation(BaseModel):
    url: str = ""
    title: str | None = None
    snippet: str | None = None


class PerplexityAnswer(BaseModel):
    """Narrative text plus the citations Perplexity used for it."""

    text: str = ""
    citations: list[PerplexityCitation] = Field(default_factory=list)


def parse_response(payload: dict[str, Any]) -> PerplexityAnswer:
    """Flatten a Responses API payload into text and citations."""
    text_parts: list[str] = []
    citations: list[PerplexityCitation] = []

    for item in payload.get("output") or []:
        kind = item.get("type")
        content = item.get("content")

        if kind == "message" and content:
            if isinstance(content, str):
                text_parts.append(content)
            elif isinstance(content, list):
                text_parts.extend(
                    block["text"]
                    for block in content
                    if block.get("type") in ("text", "output_text") and block.get("text")
                )

        if kind in ("search_result", "citation"):
            citations.append(
                PerplexityCitation(
                    url=item.get("url") or "",
                    title=item.get("title"),
                    snippet=item.get("snippet"),
                )
            )

    return PerplexityAnswer(text="".join(text_parts), citations=[c for c in citations if c.url])


class PerplexityClient(ProviderClient):
    """Perplexity Responses API with web-search presets."""

    name = "Perplexity"
    base_url = PERPLEXITY_BASE_URL
    env_var = "PERPLEXITY_API_KEY"

    async def search(
        self,
        query: str,
        *,
        preset: Preset = "pro-search",
        model: str | None = None,
        search_domain_filter: list[str] | None = None,
        search_recency_filter: Recency | None = None,
        max_steps: int | None = None,
        language: str | None = None,
        instructions: str | None = None,
        max_output_tokens: int | None = None,
    ) -> PerplexityAnswer:
        body: dict[str, Any] = {"input": query, "preset": preset}
        if model:
            body["model"] = model
        if language:
            body["language_preference"] = language
        if instructions:
            body["instructions"] = instructions
        if max_output_tokens:
            body["max_output_tokens"] = max_output_tokens
        if max_steps:
            body["max_steps"] = max_steps

        if search_domain_filter or search_recency_filter:
            web_search: dict[str, Any] = {"type": "web_search"}
            if search_domain_filter:
                web_search["search_domain_filter"] = search_domain_filter
            if search_recency_filter:
                web_search["search_recency_filter"] = search_recency_filter
            body["tools"] = [web_search]

        payload = await self._request("/v1/responses", body)
        return parse_response(payload or {})

    async def deep_research(self, query: str, *, max_steps: int = 5, **options: Any) -> PerplexityAnswer:
        return await self.search(query, preset="deep-research", max_steps=max_steps, **options)

    async def fast_search(self, query: str, **options: Any) -> PerplexityAnswer:
        return await self.search(query, preset="fast-search", **options)

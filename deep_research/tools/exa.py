from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from deep_research.tools.base import ProviderClient, compact

EXA_BASE_URL = "https://api.exa.ai"

ExaCategory = Literal[
    "company",
    "research paper",
    "news",
    "tweet",
    "personal site",
    "financial report",
]
ContentOption = bool | dict[str, Any] | None


class ExaResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    title: str | None = None
    url: str
    published_date: str | None = Field(default=None, alias="publishedDate")
    author: str | None = None
    text: str | None = None
    highlights: list[str] | None = None
    summary: str | None = None
    score: float | None = None

    @property
    def snippet(self) -> str:
        return " ".join(self.highlights or []) or (self.text or "")[:300]


class ExaSearchResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    results: list[ExaResult] = Field(default_factory=list)
    request_id: str | None = Field(default=None, alias="requestId")


class ExaAnswerResponse(BaseModel):
    answer: str = ""
    citations: list[ExaResult] = Field(default_factory=list)


class ExaClient(ProviderClient):
    """Exa.ai neural search, similarity and contents API."""

    name = "Exa"
    base_url = EXA_BASE_URL
    env_var = "EXA_API_KEY"

    def _auth_headers(self) -> dict[str, str]:
        return {"x-api-key": self.api_key}

    async def _post(self, endpoint: str, body: dict[str, Any]) -> ExaSearchResponse:
        payload = await self._request(endpoint, body)
        response = ExaSearchResponse.model_validate(payload or {})
        self.logger.debug(f"[Exa] {endpoint} returned {len(response.results)} results")
        return response

    async def search(
        self,
        query: str,
        *,
        num_results: int = 20,
        type: str = "auto",
        include_domains: list[str] | None = None,
        exclude_domains: list[str] | None = None,
        start_published_date: str | None = None,
        end_published_date: str | None = None,
        category: ExaCategory | None = None,
        text: ContentOption = None,
        highlights: ContentOption = None,
        summary: ContentOption = None,
    ) -> ExaSearchResponse:
        body = compact(
            {
                "query": query,
                "numResults": num_results,
                "type": type,
                "includeDomains": include_domains,
                "excludeDomains": exclude_domains,
                "startPublishedDate": start_published_date,
                "endPublishedDate": end_published_date,
                "category": category,
                "text": text,
                "highlights": highlights,
                "summary": summary,
            }
        )
        return await self._post("/search", body)

    async def find_similar(
        self,
        url: str,
        *,
        num_results: int = 20,
        include_domains: list[str] | None = None,
        exclude_domains: list[str] | None = None,
        text: ContentOption = None,
        highlights: ContentOption = None,
        summary: ContentOption = None,
    ) -> ExaSearchResponse:
        body = compact(
            {
                "url": url,
                "numResults": num_results,
                "includeDomains": include_domains,
                "excludeDomains": exclude_domains,
                "text": text,
                "highlights": highlights,
                "summary": summary,
            }
        )
        return await self._post("/findSimilar", body)

    async def get_contents(
        self,
        urls: list[str],
        *,
        text: ContentOption = None,
        highlights: ContentOption = None,
        summary: ContentOption = None,
    ) -> ExaSearchResponse:
        body = compact({"urls": urls, "text": text, "highlights": highlights, "summary": summary})
        return await self._post("/contents", body)

    async def answer(self, query: str, *, text: bool = False) -> ExaAnswerResponse:
        payload = await self._request("/answer", {"query": query, "text": text})
        return ExaAnswerResponse.model_validate(payload or {})

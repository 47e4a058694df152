from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from deep_research.tools.base import ProviderClient, compact

FIRECRAWL_BASE_URL = "https://api.firecrawl.dev/v2"


class FirecrawlSearchItem(BaseModel):
    model_config = ConfigDict(extra="ignore")

    url: str
    title: str | None = None
    description: str | None = None
    markdown: str | None = None
    summary: str | None = None
    metadata: dict[str, Any] | None = None

    @property
    def snippet(self) -> str:
        return self.description or (self.markdown or "")[:300]


class FirecrawlScrapeData(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    markdown: str | None = None
    html: str | None = None
    raw_html: str | None = Field(default=None, alias="rawHtml")
    summary: str | None = None
    links: list[str] | None = None
    metadata: dict[str, Any] | None = None

    @property
    def title(self) -> str | None:
        return (self.metadata or {}).get("title")


class FirecrawlMapLink(BaseModel):
    url: str
    title: str | None = None
    description: str | None = None


class FirecrawlExtractResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    success: bool = False
    data: dict[str, Any] | list[dict[str, Any]] | None = None


class FirecrawlCrawlStatus(BaseModel):
    model_config = ConfigDict(extra="ignore")

    status: str = ""
    total: int = 0
    completed: int = 0
    data: list[FirecrawlScrapeData] = Field(default_factory=list)


class FirecrawlClient(ProviderClient):
    """Firecrawl search, scrape, map, extract and crawl API (v2)."""

    name = "Firecrawl"
    base_url = FIRECRAWL_BASE_URL
    env_var = "FIRECRAWL_API_KEY"

    async def search(
        self,
        query: str,
        *,
        limit: int = 20,
        tbs: str | None = None,
        location: str | None = None,
        country: str | None = None,
        scrape_options: dict[str, Any] | None = None,
    ) -> list[FirecrawlSearchItem]:
        body = compact(
            {
                "query": query,
                "limit": limit,
                "tbs": tbs,
                "location": location,
                "country": country,
                "scrapeOptions": scrape_options,
            }
        )
        payload = await self._request("/search", body) or {}
        data = payload.get("data") or []
        # v2 groups hits by kind; v1 returns a flat list.
        if isinstance(data, dict):
            data = data.get("web") or []
        return [FirecrawlSearchItem.model_validate(item) for item in data if item.get("url")]

    async def scrape(
        self,
        url: str,
        *,
        formats: list[str] | None = None,
        only_main_content: bool | None = None,
        wait_for: int | None = None,
        timeout_ms: int | None = None,
    ) -> FirecrawlScrapeData:
        body = compact(
            {
                "url": url,
                "formats": formats or ["markdown", "summary"],
                "onlyMainContent": only_main_content,
                "waitFor": wait_for,
                "timeout": timeout_ms,
            }
        )
        payload = await self._request("/scrape", body) or {}
        return FirecrawlScrapeData.model_validate(payload.get("data") or {})

    async def map(
        self,
        url: str,
        *,
        search: str | None = None,
        limit: int | None = None,
        include_subdomains: bool | None = None,
    ) -> list[FirecrawlMapLink]:
        body = compact(
            {
                "url": url,
                "search": search,
                "limit": limit,
                "includeSubdomains": include_subdomains,
            }
        )
        payload = await self._request("/map", body) or {}
        links = []
        for link in payload.get("links") or []:
            # Older responses list bare URL strings.
            links.append(FirecrawlMapLink(url=link) if isinstance(link, str) else FirecrawlMapLink.model_validate(link))
        return links

    async def extract(
        self,
        urls: list[str],
        *,
        prompt: str | None = None,
        schema: dict[str, Any] | None = None,
        enable_web_search: bool | None = None,
    ) -> FirecrawlExtractResponse:
        body = compact(
            {
                "urls": urls,
                "prompt": prompt,
                "schema": schema,
                "enableWebSearch": enable_web_search,
            }
        )
        payload = await self._request("/extract", body)
        return FirecrawlExtractResponse.model_validate(payload or {})

    async def crawl(
        self,
        url: str,
        *,
        limit: int = 50,
        max_discovery_depth: int | None = None,
        include_paths: list[str] | None = None,
        exclude_paths: list[str] | None = None,
    ) -> str:
        """Start a crawl job and return its id."""
        body = compact(
            {
                "url": url,
                "limit": limit,
                "maxDiscoveryDepth": max_discovery_depth,
                "includePaths": include_paths,
                "excludePaths": exclude_paths,
            }
        )
        payload = await self._request("/crawl", body) or {}
        return str(payload.get("id", ""))

    async def get_crawl_status(self, crawl_id: str) -> FirecrawlCrawlStatus:
        payload = await self._request(f"/crawl/{crawl_id}", method="GET")
        return FirecrawlCrawlStatus.model_validate(payload or {})

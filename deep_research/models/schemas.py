from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

Category = Literal["news", "research paper", "company", "tweet", "personal site"]
Depth = Literal["standard", "deep", "exhaustive"]
ScrapeFormat = Literal["markdown", "summary", "html", "links"]


class ToolParams(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# --- Tool parameters ---


class DeepSearchParams(ToolParams):
    query: str
    num_results: float | None = Field(default=None, alias="numResults")
    domains: list[str] | None = None
    exclude_domains: list[str] | None = Field(default=None, alias="excludeDomains")
    category: Category | None = None


class DeepResearchParams(ToolParams):
    topic: str
    depth: Depth = "deep"
    focus_areas: list[str] | None = Field(default=None, alias="focusAreas")
    language: str | None = None


class MassSummaryParams(ToolParams):
    topic: str
    min_sources: float = Field(default=100, alias="minSources")
    max_sources: float = Field(default=150, alias="maxSources")
    domains: list[str] | None = None
    date_from: str | None = Field(default=None, alias="dateFrom")
    date_to: str | None = Field(default=None, alias="dateTo")


class DateSearchParams(ToolParams):
    query: str
    date_from: str = Field(alias="dateFrom")
    date_to: str = Field(alias="dateTo")
    domains: list[str] | None = None
    num_results: float | None = Field(default=None, alias="numResults")


class CompareOffersParams(ToolParams):
    query: str
    criteria: list[str] | None = None
    num_offers: float = Field(default=30, alias="numOffers")
    domains: list[str] | None = None


class ScrapeExtractParams(ToolParams):
    urls: list[str]
    extract_prompt: str | None = Field(default=None, alias="extractPrompt")
    extract_schema: dict[str, Any] | None = Field(default=None, alias="extractSchema")
    formats: list[ScrapeFormat] | None = None


class SiteSearchParams(ToolParams):
    query: str
    domains: list[str]
    num_results: float | None = Field(default=None, alias="numResults")
    map_sites: bool = Field(default=False, alias="mapSites")


class FindSimilarParams(ToolParams):
    url: str
    num_results: float | None = Field(default=None, alias="numResults")
    exclude_domains: list[str] | None = Field(default=None, alias="excludeDomains")


# --- Host API responses ---


class TextContent(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ToolResponse(BaseModel):
    content: list[TextContent]


class ToolInfo(BaseModel):
    name: str
    description: str
    parameters: dict[str, Any]


class ToolsResponse(BaseModel):
    tools: list[ToolInfo]


class CommandResponse(BaseModel):
    text: str


class RpcResponse(BaseModel):
    ok: bool
    result: dict[str, Any] | None = None
    error: str | None = None

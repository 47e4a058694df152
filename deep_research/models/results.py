from __future__ import annotations

from dataclasses import dataclass, field
from typing import Generic, Literal, TypeVar

Source = Literal["exa", "firecrawl", "perplexity"]

PROVIDER_NAMES: dict[Source, str] = {
    "exa": "Exa",
    "firecrawl": "Firecrawl",
    "perplexity": "Perplexity",
}

# Pseudo-URL carrying Perplexity's narrative answer inside a result list.
SYNTHESIS_URL = "perplexity://synthesis"

E = TypeVar("E")
F = TypeVar("F")
P = TypeVar("P")
R = TypeVar("R")


def is_synthetic_url(url: str) -> bool:
    return url.startswith("perplexity://")


@dataclass(frozen=True, slots=True)
class SearchResult:
    """One provider hit, before merging."""

    url: str
    title: str
    snippet: str
    source: Source
    content: str | None = None
    published_date: str | None = None
    score: float | None = None


@dataclass(slots=True)
class MergedResult:
    """A deduplicated hit attributed to every provider that returned it."""

    url: str
    normalized_url: str
    title: str
    snippet: str
    content: str | None = None
    published_date: str | None = None
    sources: list[Source] = field(default_factory=list)
    relevance_score: float = 1.0


@dataclass(slots=True)
class ParallelResult(Generic[E, F, P]):
    exa: E | None
    firecrawl: F | None
    perplexity: P | None
    errors: list[str] = field(default_factory=list)

    def status(self) -> dict[Source, bool]:
        return {
            "exa": self.exa is not None,
            "firecrawl": self.firecrawl is not None,
            "perplexity": self.perplexity is not None,
        }

    @property
    def succeeded(self) -> int:
        return sum(self.status().values())


@dataclass(slots=True)
class BatchResult(Generic[R]):
    results: list[R | None] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

from __future__ import annotations

import re
from typing import Iterable
from urllib.parse import urlsplit

from deep_research.models.results import MergedResult, SearchResult

_SCHEME_RE = re.compile(r"^https?://", re.IGNORECASE)
_WWW_RE = re.compile(r"^www\.", re.IGNORECASE)


def _fallback_key(url: str) -> str:
    key = url.strip().lower()
    key = _SCHEME_RE.sub("", key)
    key = _WWW_RE.sub("", key)
    return key.rstrip("/")


def normalize_url(url: str) -> str:
    """Deduplication key: host without ``www.`` plus path, lowercased.

    Scheme, trailing slashes, query string and fragment never affect the key.
    """
    try:
        parsed = urlsplit(url.strip())
        host = parsed.hostname
    except ValueError:
        return _fallback_key(url)

    if not parsed.scheme or not host:
        # Scheme-less input such as "example.com/a" parses as a bare path.
        return _fallback_key(url.split("#", 1)[0].split("?", 1)[0])

    host = _WWW_RE.sub("", host)
    path = parsed.path.rstrip("/")
    return f"{host}{path}".lower()


def merge_results(results: Iterable[SearchResult]) -> list[MergedResult]:
    """Fold provider hits into one record per normalized URL, in first-seen order."""
    by_key: dict[str, MergedResult] = {}

    for r in results:
        key = normalize_url(r.url)
        existing = by_key.get(key)

        if existing is None:
            by_key[key] = MergedResult(
                url=r.url,
                normalized_url=key,
                title=r.title or r.url,
                snippet=r.snippet or "",
                content=r.content,
                published_date=r.published_date,
                sources=[r.source],
                relevance_score=1 + (r.score or 0),
            )
            continue

        if r.source not in existing.sources:
            existing.sources.append(r.source)
            existing.relevance_score += 1
        if r.content and len(r.content) > len(existing.content or ""):
            existing.content = r.content
        if r.snippet and len(r.snippet) > len(existing.snippet):
            existing.snippet = r.snippet
        if not existing.published_date and r.published_date:
            existing.published_date = r.published_date

    return list(by_key.values())


def rank_by_relevance(results: Iterable[MergedResult]) -> list[MergedResult]:
    """More providers first, then higher score; ties keep input order."""
    return sorted(
        results,
        key=lambda r: (len(r.sources), r.relevance_score),
        reverse=True,
    )


def deduplicate_urls(urls: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    unique: list[str] = []
    for url in urls:
        key = normalize_url(url)
        if key in seen:
            continue
        seen.add(key)
        unique.append(url)
    return unique

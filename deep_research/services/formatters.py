from __future__ import annotations

from typing import Any, Iterable, Mapping, Sequence

from deep_research.models.results import PROVIDER_NAMES, MergedResult, Source

SNIPPET_MAX_CHARS = 500
CONTENT_MAX_CHARS = 5000
CELL_MAX_CHARS = 100

# Keys that identify a comparison row rather than describe it.
IDENTITY_FIELDS = ("url", "source")


def source_badges(sources: Iterable[Source]) -> str:
    return " ".join(f"`{s}`" for s in sources)


def format_search_results(
    results: Sequence[MergedResult],
    *,
    show_content: bool = False,
    max_results: int | None = None,
) -> str:
    """Render ranked results as a markdown report."""
    items = list(results if max_results is None else results[:max_results])
    if not items:
        return "No results found."

    lines: list[str] = [
        f"## Search Results ({len(items)} unique from {_count_sources(items)} services)\n",
    ]

    for i, r in enumerate(items, 1):
        date_part = f" | {r.published_date[:10]}" if r.published_date else ""
        lines.append(f"### {i}. [{r.title}]({r.url})")
        lines.append(f"Sources: {source_badges(r.sources)}{date_part}\n")

        if r.snippet:
            lines.append(f"> {r.snippet[:SNIPPET_MAX_CHARS]}\n")

        if show_content and r.content:
            lines.append(
                f"<details><summary>Full content</summary>\n\n{r.content[:CONTENT_MAX_CHARS]}\n\n</details>\n"
            )

    return "\n".join(lines)


def format_summary(summary: str, sources: Sequence[Mapping[str, str]]) -> str:
    """Render a narrative summary followed by a numbered source list."""
    lines: list[str] = [
        "## Research Summary\n",
        summary or "No summary available.",
        f"\n---\n## Sources ({len(sources)})\n",
    ]
    for i, s in enumerate(sources, 1):
        url = s.get("url", "")
        lines.append(f"{i}. [{s.get('title') or url}]({url})")
    return "\n".join(lines)


def _cell(value: Any) -> str:
    if value is None or value == "":
        text = "-"
    elif isinstance(value, (list, tuple)):
        text = ", ".join(str(v) for v in value) or "-"
    else:
        text = str(value)
    text = text.replace("\n", " ").replace("|", "\\|")
    return text[:CELL_MAX_CHARS]


def format_comparison(items: Sequence[Mapping[str, Any]], criteria: Sequence[str]) -> str:
    """Render structured records as a comparison table with a link column."""
    if not items:
        return "No items to compare."

    cols = list(criteria) or [k for k in items[0] if k not in IDENTITY_FIELDS]

    lines: list[str] = [
        f"## Comparison ({len(items)} offers)\n",
        f"| # | {' | '.join(cols)} | Source |",
        f"|---|{'|'.join('---' for _ in cols)}|---|",
    ]
    for i, item in enumerate(items, 1):
        values = " | ".join(_cell(item.get(c)) for c in cols)
        url = item.get("url")
        link = f"[link]({url})" if url else "-"
        lines.append(f"| {i} | {values} | {link} |")

    return "\n".join(lines)


def format_errors(errors: Sequence[str]) -> str:
    """Render provider warnings as a separate block, one line per error."""
    if not errors:
        return ""
    lines = ["\n---\n**Service warnings:**"]
    lines.extend(f"- {e}" for e in errors)
    return "\n".join(lines)


def format_service_status(status: Mapping[Source, bool]) -> str:
    parts = [
        f"{PROVIDER_NAMES[source]} {'OK' if ok else 'FAILED'}"
        for source, ok in status.items()
    ]
    return f"**Services:** {' | '.join(parts)}\n\n"


def _count_sources(results: Iterable[MergedResult]) -> int:
    return len({s for r in results for s in r.sources})

from __future__ import annotations

import pytest
from conftest import exa_response, perplexity_answer

from deep_research.exceptions import ProviderError
from deep_research.models.schemas import (
    CompareOffersParams,
    DeepResearchParams,
    MassSummaryParams,
    ScrapeExtractParams,
)
from deep_research.tools.exa import ExaResult, ExaSearchResponse
from deep_research.tools.firecrawl import FirecrawlExtractResponse, FirecrawlScrapeData, FirecrawlSearchItem
from deep_research.workflows import compare_offers, deep_research, mass_summary, scrape_extract


# --- deep_research ---


@pytest.mark.asyncio
async def test_deep_research_standard_runs_a_single_round(ctx, providers):
    exa, firecrawl, perplexity = providers
    exa.search.return_value = exa_response("https://a.com/1")
    perplexity.deep_research.return_value = perplexity_answer("Long analysis.", "https://a.com/1")

    text = await deep_research.run(DeepResearchParams(topic="fusion power", depth="standard"), ctx)

    assert exa.search.await_count == 1
    assert exa.search.await_args.kwargs["num_results"] == 20
    assert perplexity.deep_research.await_args.kwargs == {"max_steps": 3, "language": "en"}
    perplexity.fast_search.assert_not_awaited()
    assert "**Depth:** standard | **Total unique sources:** 1 | **Focus areas:** general" in text
    assert "## Perplexity Deep Research Analysis\n\nLong analysis." in text
    assert "Sources: `exa` `perplexity`" in text


@pytest.mark.asyncio
async def test_deep_research_exhaustive_adds_focus_and_variation_rounds(ctx, providers):
    exa, firecrawl, perplexity = providers
    perplexity.search.return_value = perplexity_answer("Focused answer.")
    perplexity.fast_search.return_value = perplexity_answer("", "https://variation.com/1")

    text = await deep_research.run(
        DeepResearchParams(topic="fusion", depth="exhaustive", focusAreas=["cost", "safety"], language="de"),
        ctx,
    )

    # 1 broad + 2 focus + 3 variation rounds
    assert exa.search.await_count == 6
    assert firecrawl.search.await_count == 6
    assert perplexity.search.await_count == 2
    assert perplexity.fast_search.await_count == 3
    assert perplexity.deep_research.await_args.kwargs["max_steps"] == 8
    assert "Focus on: cost, safety." in perplexity.deep_research.await_args.args[0]
    assert "## Focus: cost" in text
    assert "## Focus: safety" in text
    assert "https://variation.com/1" in text


@pytest.mark.asyncio
async def test_deep_research_focus_areas_ignored_for_standard_depth(ctx, providers):
    exa, _, perplexity = providers

    await deep_research.run(DeepResearchParams(topic="t", depth="standard", focusAreas=["x"]), ctx)

    assert exa.search.await_count == 1
    perplexity.search.assert_not_awaited()


@pytest.mark.asyncio
async def test_deep_research_collects_errors_from_every_round(ctx, providers):
    exa, _, _ = providers
    exa.search.side_effect = ProviderError("exa down")

    text = await deep_research.run(DeepResearchParams(topic="t", focusAreas=["a", "b"]), ctx)

    assert text.count("- [Exa] exa down") == 3


# --- mass_summary ---


@pytest.mark.asyncio
async def test_mass_summary_backfills_and_falls_back_to_first_pass(ctx, providers):
    exa, firecrawl, perplexity = providers
    exa.search.return_value = exa_response("https://a.com/1", "https://a.com/2")
    firecrawl.search.return_value = [FirecrawlSearchItem(url="https://c.com/3")]
    exa.get_contents.return_value = ExaSearchResponse(
        results=[ExaResult(url="https://c.com/3", summary="backfilled summary")]
    )
    perplexity.search.return_value = perplexity_answer("First pass overview.", "https://www.a.com/1/")
    perplexity.deep_research.side_effect = ProviderError("busy")

    text = await mass_summary.run(MassSummaryParams(topic="solar"), ctx)

    assert exa.search.await_count == 4
    assert firecrawl.search.await_count == 4
    exa.get_contents.assert_awaited_once()
    assert exa.get_contents.await_args.args[0] == ["https://c.com/3"]
    assert "**Sources collected:** 3 (target: 100-150)" in text
    assert "## Research Summary\n\nFirst pass overview." in text
    assert "## Sources (3)" in text
    assert "- [Perplexity] synthesis: busy" in text


@pytest.mark.asyncio
async def test_mass_summary_synthesis_sees_backfilled_content(ctx, providers):
    exa, firecrawl, perplexity = providers
    firecrawl.search.return_value = [FirecrawlSearchItem(url="https://c.com/3", title="C")]
    exa.get_contents.return_value = ExaSearchResponse(
        results=[ExaResult(url="https://c.com/3", summary="backfilled summary")]
    )
    perplexity.deep_research.return_value = perplexity_answer("Final synthesis.")

    text = await mass_summary.run(MassSummaryParams(topic="solar", maxSources=10), ctx)

    prompt = perplexity.deep_research.await_args.args[0]
    assert "[C](https://c.com/3): backfilled summary" in prompt
    assert perplexity.deep_research.await_args.kwargs["max_steps"] == 5
    assert "Final synthesis." in text


@pytest.mark.asyncio
async def test_mass_summary_total_failure_uses_templated_summary(ctx, providers):
    exa, firecrawl, perplexity = providers
    exa.search.side_effect = ProviderError("exa down")
    firecrawl.search.side_effect = ProviderError("firecrawl down")
    perplexity.search.side_effect = ProviderError("perplexity down")
    perplexity.deep_research.side_effect = ProviderError("perplexity down")

    text = await mass_summary.run(MassSummaryParams(topic="solar", minSources=10, maxSources=5), ctx)

    assert "**Sources collected:** 0 (target: 10-10)" in text
    assert 'Summary based on 0 collected sources about "solar".' in text
    assert "- [Exa] exa down" in text
    assert "- [Firecrawl] firecrawl down" in text


@pytest.mark.asyncio
async def test_mass_summary_truncates_fractional_source_bounds(ctx, providers):
    params = MassSummaryParams.model_validate({"topic": "solar", "minSources": 20.9, "maxSources": 40.2})

    text = await mass_summary.run(params, ctx)

    assert "(target: 20-40)" in text


@pytest.mark.asyncio
async def test_mass_summary_tolerates_partial_variation_failures(ctx, providers):
    exa, _, _ = providers
    calls = 0

    async def flaky(query, **kwargs):
        nonlocal calls
        calls += 1
        if calls % 2:
            raise ProviderError("flaky")
        return exa_response(f"https://a.com/{calls}")

    exa.search.side_effect = flaky

    text = await mass_summary.run(MassSummaryParams(topic="solar"), ctx)

    assert "[Exa]" not in text
    assert "**Sources collected:** 2" in text


def test_query_variations():
    assert mass_summary.query_variations("solar") == [
        "solar",
        "solar analysis",
        "solar review",
        "solar guide",
        "solar overview",
    ]


# --- compare_offers ---


def test_tag_extracted_aligns_by_position_when_counts_match():
    response = FirecrawlExtractResponse(success=True, data=[{"name": "A"}, {"name": "B"}])

    tagged = compare_offers.tag_extracted(response, ["https://a.com", "https://b.com"])

    assert tagged == [
        {"name": "A", "url": "https://a.com", "source": "firecrawl-extract"},
        {"name": "B", "url": "https://b.com", "source": "firecrawl-extract"},
    ]


def test_tag_extracted_does_not_guess_when_counts_differ():
    response = FirecrawlExtractResponse(
        success=True, data=[{"name": "A", "url": "https://own.com"}, {"name": "B"}, {"name": "C"}]
    )

    tagged = compare_offers.tag_extracted(response, ["https://a.com", "https://b.com"])

    assert [t["url"] for t in tagged] == ["https://own.com", "", ""]


def test_tag_extracted_single_object_and_failure():
    single = FirecrawlExtractResponse(success=True, data={"name": "A"})
    assert compare_offers.tag_extracted(single, ["https://a.com"])[0]["url"] == "https://a.com"
    assert compare_offers.tag_extracted(FirecrawlExtractResponse(success=False), ["https://a.com"]) == []


def test_extraction_schema_declares_each_criterion():
    assert compare_offers.extraction_schema(["price", "rating"]) == {
        "type": "object",
        "properties": {"price": {"type": "string"}, "rating": {"type": "string"}},
    }


@pytest.mark.asyncio
async def test_compare_offers_builds_table_and_analysis(ctx, providers):
    exa, firecrawl, perplexity = providers
    exa.search.return_value = exa_response("https://shop.com/1", "https://shop.com/2")
    firecrawl.extract.return_value = FirecrawlExtractResponse(
        success=True,
        data=[{"name": "One", "price": "$10"}, {"name": "Two", "price": "$20"}],
    )
    perplexity.search.side_effect = [
        perplexity_answer("First look."),
        perplexity_answer("Buy One."),
    ]

    text = await compare_offers.run(CompareOffersParams(query="headphones", criteria=["name", "price"]), ctx)

    assert firecrawl.extract.await_args.args[0] == ["https://shop.com/1", "https://shop.com/2"]
    assert "**Offers found:** 2 | **Extracted data:** 2 items" in text
    assert "| 1 | One | $10 | [link](https://shop.com/1) |" in text
    assert "## Analysis & Recommendations\n\nBuy One." in text
    assert "## All Sources" in text
    assert exa.search.await_args.kwargs["category"] == "company"


@pytest.mark.asyncio
async def test_compare_offers_empty_criteria_uses_record_keys(ctx, providers):
    exa, firecrawl, _ = providers
    exa.search.return_value = exa_response("https://shop.com/1")
    firecrawl.extract.return_value = FirecrawlExtractResponse(success=True, data=[{"model": "X1", "cost": "$5"}])

    text = await compare_offers.run(CompareOffersParams(query="laptops", criteria=[]), ctx)

    assert firecrawl.extract.await_args.kwargs["schema"] == {"type": "object", "properties": {}}
    assert "| # | model | cost | Source |" in text
    assert "| 1 | X1 | $5 | [link](https://shop.com/1) |" in text
    assert "key_features" not in text


@pytest.mark.asyncio
async def test_compare_offers_truncates_fractional_offer_count(ctx, providers):
    exa, firecrawl, _ = providers

    await compare_offers.run(CompareOffersParams.model_validate({"query": "q", "numOffers": 12.7}), ctx)

    assert exa.search.await_args.kwargs["num_results"] == 12
    assert firecrawl.search.await_args.kwargs["limit"] == 12


@pytest.mark.asyncio
async def test_compare_offers_extraction_failure_keeps_first_pass(ctx, providers):
    exa, firecrawl, perplexity = providers
    exa.search.return_value = exa_response("https://shop.com/1")
    firecrawl.extract.side_effect = ProviderError("extract failed")
    perplexity.search.return_value = perplexity_answer("First look.")

    text = await compare_offers.run(CompareOffersParams(query="headphones"), ctx)

    assert perplexity.search.await_count == 1
    assert "**Extracted data:** 0 items" in text
    assert "First look." in text
    assert "- [Extract] extract failed" in text


@pytest.mark.asyncio
async def test_compare_offers_skips_extraction_without_results(ctx, providers):
    _, firecrawl, _ = providers

    text = await compare_offers.run(CompareOffersParams(query="nothing"), ctx)

    firecrawl.extract.assert_not_awaited()
    assert "No results found." in text


# --- scrape_and_extract ---


@pytest.mark.asyncio
async def test_scrape_and_extract_renders_every_section(ctx, providers):
    exa, firecrawl, perplexity = providers
    exa.get_contents.return_value = ExaSearchResponse(
        results=[
            ExaResult(url="https://a.com", title="A", summary="A summary", highlights=["point"], text="full text")
        ]
    )

    async def fake_scrape(url, **kwargs):
        if url == "https://b.com":
            raise ProviderError("blocked")
        return FirecrawlScrapeData(markdown="# A page", metadata={"title": "A page"})

    firecrawl.scrape.side_effect = fake_scrape
    firecrawl.extract.return_value = FirecrawlExtractResponse(success=True, data={"price": "$5"})
    perplexity.search.return_value = perplexity_answer("Both pages sell things.")

    text = await scrape_extract.run(
        ScrapeExtractParams(urls=["https://a.com", "https://b.com"], extractPrompt="get prices"),
        ctx,
    )

    assert text.startswith("# Scrape & Extract: 2 URLs")
    assert exa.get_contents.await_args.kwargs["summary"] == {"query": "get prices"}
    assert firecrawl.scrape.await_args.kwargs["formats"] == ["markdown", "summary"]
    assert "## Content (Exa)" in text
    assert "**Key highlights:**\n- point" in text
    assert "<details><summary>Full text</summary>\n\nfull text" in text
    assert "### [A page](https://a.com)" in text
    assert '## Structured Extraction\n\n```json\n{\n  "price": "$5"\n}\n```' in text
    assert "## Analysis (Perplexity)\n\nBoth pages sell things." in text
    assert "- [Firecrawl] scrape https://b.com: blocked" in text
    assert "Analyze these URLs and get prices" in perplexity.search.await_args.args[0]


@pytest.mark.asyncio
async def test_scrape_and_extract_caps_urls_and_skips_extract_without_prompt(ctx, providers):
    exa, firecrawl, _ = providers
    firecrawl.scrape.return_value = FirecrawlScrapeData(markdown="x")
    urls = [f"https://a.com/{i}" for i in range(25)]

    text = await scrape_extract.run(ScrapeExtractParams(urls=urls, formats=["links"]), ctx)

    assert text.startswith("# Scrape & Extract: 20 URLs")
    assert len(exa.get_contents.await_args.args[0]) == 20
    assert firecrawl.scrape.await_count == 20
    assert firecrawl.scrape.await_args.kwargs["formats"] == ["links"]
    assert exa.get_contents.await_args.kwargs["summary"] is True
    firecrawl.extract.assert_not_awaited()


@pytest.mark.asyncio
async def test_scrape_and_extract_marks_firecrawl_failed_when_nothing_scraped(ctx, providers):
    _, firecrawl, _ = providers
    firecrawl.scrape.side_effect = ProviderError("down")

    text = await scrape_extract.run(ScrapeExtractParams(urls=["https://a.com"]), ctx)

    assert "Firecrawl FAILED" in text
    assert "- [Firecrawl] all 1 scrapes failed, first error: down" in text
    assert "## Content (Firecrawl)" not in text

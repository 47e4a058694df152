"""Plugin entry point: builds the provider clients and registers every tool,
command and RPC method with the host."""
from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any

from loguru import logger as default_logger
from pydantic import ValidationError

from deep_research.config import API_KEY_FIELDS, PluginConfig, resolve_config
from deep_research.host import CommandDefinition, PluginHost, ToolHandler
from deep_research.services.logger import log_tool_call
from deep_research.tools.exa import ExaClient
from deep_research.tools.firecrawl import FirecrawlClient
from deep_research.tools.perplexity import PerplexityClient
from deep_research.workflows import (
    compare_offers,
    date_search,
    deep_research,
    deep_search,
    find_similar,
    mass_summary,
    scrape_extract,
    site_search,
)
from deep_research.workflows.common import ResearchContext, WorkflowTool

if TYPE_CHECKING:
    from loguru import Logger

PLUGIN_NAME = "deep-research"
PLUGIN_VERSION = "0.1.2"

TOOLS: list[WorkflowTool] = [
    deep_search.TOOL,
    deep_research.TOOL,
    mass_summary.TOOL,
    date_search.TOOL,
    compare_offers.TOOL,
    scrape_extract.TOOL,
    site_search.TOOL,
    find_similar.TOOL,
]

SERVICE_LABELS = {
    "exaApiKey": "Exa.ai:    ",
    "firecrawlApiKey": "Firecrawl: ",
    "perplexityApiKey": "Perplexity:",
}


def get_tool(name: str) -> WorkflowTool | None:
    return next((t for t in TOOLS if t.name == name), None)


def build_context(config: PluginConfig, logger: Logger | None = None) -> ResearchContext:
    logger = logger or default_logger
    return ResearchContext(
        exa=ExaClient(config.exa_api_key, logger=logger, timeout=config.http_timeout_s),
        firecrawl=FirecrawlClient(config.firecrawl_api_key, logger=logger, timeout=config.http_timeout_s),
        perplexity=PerplexityClient(config.perplexity_api_key, logger=logger, timeout=config.http_timeout_s),
        config=config,
    )


def format_validation_error(tool: str, error: ValidationError) -> str:
    lines = [f"Invalid parameters for {tool}:"]
    for err in error.errors():
        loc = ".".join(str(part) for part in err["loc"]) or "params"
        lines.append(f"- {loc}: {err['msg']}")
    return "\n".join(lines)


def make_handler(tool: WorkflowTool, ctx: ResearchContext) -> ToolHandler:
    """Wrap a workflow so the host always gets text back."""

    async def handler(raw: dict[str, Any]) -> str:
        start = time.monotonic()
        try:
            params = tool.params_model.model_validate(raw or {})
        except ValidationError as e:
            log_tool_call(tool.name, "invalid_params", error=str(e))
            return format_validation_error(tool.name, e)

        try:
            text = await tool.run(params, ctx)
        except Exception as e:
            default_logger.exception(f"[{tool.name}] unexpected failure")
            log_tool_call(tool.name, "error", int((time.monotonic() - start) * 1000), error=str(e))
            return f"# {tool.name} failed\n\nUnexpected error: {e}"

        log_tool_call(tool.name, "success", int((time.monotonic() - start) * 1000))
        return text

    return handler


def research_command(args: str | None) -> str:
    topic = (args or "").strip()
    if not topic:
        return "Usage: /research <topic>\nExample: /research AI regulation in Europe"
    return (
        f'Starting deep research on: "{topic}"\n\n'
        "The AI will now use the deep_research tool to explore this topic using Exa.ai, "
        "Firecrawl, and Perplexity in parallel."
    )


def status_report(config: PluginConfig) -> str:
    lines = [f"Deep Research Plugin v{PLUGIN_VERSION}", "", "API Keys:"]
    for field in API_KEY_FIELDS:
        source = config.key_source(field)
        lines.append(f"  {SERVICE_LABELS[field]} {f'configured ({source})' if source else 'MISSING'}")

    lines += [
        "",
        "Settings:",
        f"  Default results/service: {config.default_num_results}",
        f"  Default language: {config.default_language}",
        "",
        f"All services ready. {len(TOOLS)} search tools available."
        if config.all_configured
        else "WARNING: Missing keys. Set in plugin config or env vars ("
        + ", ".join(API_KEY_FIELDS.values())
        + ").",
        "",
        f"Available tools: {', '.join(t.name for t in TOOLS)}",
    ]
    return "\n".join(lines)


def status_payload(config: PluginConfig) -> dict[str, Any]:
    return {
        "status": "ok",
        "services": config.services,
        "tools": len(TOOLS),
        "defaultNumResults": config.default_num_results,
        "defaultLanguage": config.default_language,
    }


def register(host: PluginHost, *, logger: Logger | None = None) -> ResearchContext:
    """Resolve configuration once and register everything with ``host``."""
    config = resolve_config(host.get_config())

    missing = config.missing_keys()
    if missing:
        host.log(
            "warning",
            f"[{PLUGIN_NAME}] Missing API keys: {', '.join(missing)}. "
            "Configure them in the plugin config or environment variables.",
        )

    ctx = build_context(config, logger)

    for tool in TOOLS:
        host.register_tool(tool.definition, make_handler(tool, ctx))

    host.register_command(
        CommandDefinition(
            name="research",
            description="Start a deep research on a topic (pass topic as argument)",
            handler=research_command,
            accepts_args=True,
        )
    )
    host.register_command(
        CommandDefinition(
            name="research-status",
            description="Check Deep Research plugin status and API key configuration",
            handler=lambda _args: status_report(config),
        )
    )
    host.register_rpc_method(f"{PLUGIN_NAME}.status", lambda _params: status_payload(config))

    services = config.services
    host.log(
        "info",
        f"[{PLUGIN_NAME}] Plugin loaded. Services: Exa={services['exa']}, "
        f"Firecrawl={services['firecrawl']}, Perplexity={services['perplexity']}. "
        f"{len(TOOLS)} tools registered.",
    )
    return ctx

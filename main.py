"""Deep Research - parallel research across Exa, Firecrawl and Perplexity

Simple CLI for running a single research tool.
"""

import argparse
import asyncio
import json
import sys

import uvicorn

from deep_research.config import Settings, resolve_config
from deep_research.plugin import TOOLS, build_context, get_tool, make_handler, status_report
from deep_research.services.logger import configure_logging


async def run_tool(name: str, params: dict) -> str:
    """Run one tool with the given parameters and return its report."""
    tool = get_tool(name)
    if tool is None:
        raise SystemExit(f"Unknown tool: {name}. Available: {', '.join(t.name for t in TOOLS)}")

    config = resolve_config()
    handler = make_handler(tool, build_context(config))
    return await handler(params)


def main():
    parser = argparse.ArgumentParser(description="Deep Research CLI")
    parser.add_argument("tool", nargs="?", help="Tool to run (e.g. deep_search)")
    parser.add_argument("--params", "-p", default="{}", help="Tool parameters as a JSON object")
    parser.add_argument("--query", "-q", help="Shortcut for {\"query\": ...}")
    parser.add_argument("--status", action="store_true", help="Show API key configuration and exit")
    parser.add_argument("--serve", action="store_true", help="Serve the HTTP API instead of running a tool")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)

    args = parser.parse_args()

    settings = Settings()
    configure_logging(settings.app_log_level, noisy_level=settings.noisy_log_level, log_dir=None)

    if args.status:
        print(status_report(resolve_config(settings=settings)))
        return

    if args.serve:
        uvicorn.run("deep_research.main:app", host=args.host, port=args.port)
        return

    if not args.tool:
        parser.error("a tool name is required")

    try:
        params = json.loads(args.params)
    except json.JSONDecodeError as e:
        parser.error(f"--params is not valid JSON: {e}")
    if not isinstance(params, dict):
        parser.error("--params must be a JSON object")
    if args.query:
        params.setdefault("query", args.query)

    print(f"Running {args.tool}...", file=sys.stderr)
    print("-" * 50, file=sys.stderr)
    print(asyncio.run(run_tool(args.tool, params)))


if __name__ == "__main__":
    main()

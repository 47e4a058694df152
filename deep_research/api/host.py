from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, HTTPException, Query
from loguru import logger

from deep_research.host import (
    CommandDefinition,
    LogLevel,
    RegisteredTool,
    RpcHandler,
    ToolDefinition,
    ToolHandler,
)
from deep_research.models.schemas import (
    CommandResponse,
    RpcResponse,
    TextContent,
    ToolInfo,
    ToolResponse,
    ToolsResponse,
)


def missing_required(definition: ToolDefinition, params: dict[str, Any]) -> list[str]:
    required = definition.parameters.get("required", [])
    return [name for name in required if params.get(name) in (None, "", [])]


class FastAPIHost:
    """Serves registered tools, commands and RPC methods over HTTP."""

    def __init__(self, config: dict[str, Any] | None = None):
        self._config = dict(config or {})
        self.tools: dict[str, RegisteredTool] = {}
        self.commands: dict[str, CommandDefinition] = {}
        self.rpc_methods: dict[str, RpcHandler] = {}

    # --- PluginHost ---

    def register_tool(self, definition: ToolDefinition, handler: ToolHandler) -> None:
        self.tools[definition.name] = RegisteredTool(definition=definition, handler=handler)

    def register_command(self, command: CommandDefinition) -> None:
        self.commands[command.name] = command

    def register_rpc_method(self, name: str, handler: RpcHandler) -> None:
        self.rpc_methods[name] = handler

    def get_config(self) -> dict[str, Any]:
        return dict(self._config)

    def log(self, level: LogLevel, message: str) -> None:
        logger.log(level.upper(), message)

    # --- HTTP surface ---

    def router(self) -> APIRouter:
        router = APIRouter(prefix="/api", tags=["deep-research"])

        @router.get("/tools", response_model=ToolsResponse)
        async def list_tools():
            """List registered research tools with their parameter schemas."""
            return ToolsResponse(
                tools=[
                    ToolInfo(
                        name=t.definition.name,
                        description=t.definition.description,
                        parameters=t.definition.parameters,
                    )
                    for t in self.tools.values()
                ]
            )

        @router.post("/tools/{name}", response_model=ToolResponse)
        async def call_tool(name: str, params: dict[str, Any] = Body(default_factory=dict)):
            """Invoke a research tool and return its markdown report."""
            tool = self.tools.get(name)
            if tool is None:
                raise HTTPException(status_code=404, detail=f"Unknown tool: {name}")

            missing = missing_required(tool.definition, params)
            if missing:
                raise HTTPException(status_code=422, detail=f"Missing required parameters: {', '.join(missing)}")

            text = await tool.handler(params)
            return ToolResponse(content=[TextContent(text=text)])

        @router.get("/commands/{name}", response_model=CommandResponse)
        async def run_command(name: str, args: str | None = Query(default=None)):
            command = self.commands.get(name)
            if command is None:
                raise HTTPException(status_code=404, detail=f"Unknown command: {name}")
            return CommandResponse(text=command.handler(args if command.accepts_args else None))

        @router.post("/rpc/{method}", response_model=RpcResponse)
        async def call_rpc(method: str, params: dict[str, Any] = Body(default_factory=dict)):
            handler = self.rpc_methods.get(method)
            if handler is None:
                return RpcResponse(ok=False, error=f"Unknown method: {method}")
            try:
                return RpcResponse(ok=True, result=handler(params))
            except Exception as e:
                logger.exception(f"RPC {method} failed")
                return RpcResponse(ok=False, error=str(e))

        return router

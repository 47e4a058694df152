"""The narrow surface the plugin needs from whatever hosts it."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Literal, Protocol

LogLevel = Literal["debug", "info", "warning", "error"]

ToolHandler = Callable[[dict[str, Any]], Awaitable[str]]
CommandHandler = Callable[[str | None], str]
RpcHandler = Callable[[dict[str, Any]], dict[str, Any]]


@dataclass(frozen=True, slots=True)
class ToolDefinition:
    name: str
    description: str
    parameters: dict[str, Any]


@dataclass(frozen=True, slots=True)
class CommandDefinition:
    name: str
    description: str
    handler: CommandHandler
    accepts_args: bool = False
    require_auth: bool = True


@dataclass(slots=True)
class RegisteredTool:
    definition: ToolDefinition
    handler: ToolHandler


class PluginHost(Protocol):
    def register_tool(self, definition: ToolDefinition, handler: ToolHandler) -> None: ...

    def register_command(self, command: CommandDefinition) -> None: ...

    def register_rpc_method(self, name: str, handler: RpcHandler) -> None: ...

    def get_config(self) -> dict[str, Any]: ...

    def log(self, level: LogLevel, message: str) -> None: ...

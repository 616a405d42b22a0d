"""Tool-call facade for MCP-style stdio servers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from stdiorpc.client.session import ClientSession
from stdiorpc.core.serialization import safe_dict
from stdiorpc.utils.exceptions import ToolCallError

DEFAULT_PROTOCOL_VERSION = "2024-11-05"


@dataclass(slots=True)
class ToolInfo:
    """Tool advertised by tools/list."""

    name: str
    description: str = ""
    input_schema: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class ToolResult:
    """Result of tools/call."""

    content: list[dict[str, Any]] = field(default_factory=list)
    is_error: bool = False
    structured: dict[str, Any] | None = None
    raw: dict[str, Any] = field(default_factory=dict)

    def text(self) -> str:
        parts = [str(block.get("text", "")) for block in self.content if block.get("type") == "text"]
        return "\n".join(p for p in parts if p)

    def raise_for_error(self, tool_name: str) -> ToolResult:
        if self.is_error:
            raise ToolCallError(tool_name, self.text() or "tool reported an error", self.content)
        return self

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> ToolResult:
        content = payload.get("content")
        structured = payload.get("structuredContent")
        return cls(
            content=[safe_dict(x) for x in content] if isinstance(content, list) else [],
            is_error=bool(payload.get("isError", False)),
            structured=structured if isinstance(structured, dict) else None,
            raw=payload,
        )


class ToolClient:
    """Thin wrapper that speaks the tools/* methods over a ClientSession."""

    def __init__(self, session: ClientSession):
        self.session = session
        self.server_info: dict[str, Any] = {}
        self.capabilities: dict[str, Any] = {}

    def initialize(
        self,
        client_name: str = "stdiorpc",
        client_version: str = "0.0.0",
        protocol_version: str = DEFAULT_PROTOCOL_VERSION,
        *,
        timeout: float | None = None,
    ) -> dict[str, Any]:
        result = self.session.call(
            "initialize",
            {
                "protocolVersion": protocol_version,
                "clientInfo": {"name": client_name, "version": client_version},
                "capabilities": {},
            },
            timeout=timeout,
        )
        self.server_info = safe_dict(result.get("serverInfo"))
        self.capabilities = safe_dict(result.get("capabilities"))
        self.session.notify("notifications/initialized")
        logger.info(
            "[{}] initialized server={} protocol={}",
            self.session.name,
            self.server_info.get("name", "?"),
            result.get("protocolVersion", protocol_version),
        )
        return result

    def list_tools(self, *, timeout: float | None = None) -> list[ToolInfo]:
        result = self.session.call("tools/list", {}, timeout=timeout)
        tools = result.get("tools")
        out: list[ToolInfo] = []
        for item in tools if isinstance(tools, list) else []:
            row = safe_dict(item)
            name = str(row.get("name") or "")
            if not name:
                continue
            out.append(
                ToolInfo(
                    name=name,
                    description=str(row.get("description") or ""),
                    input_schema=safe_dict(row.get("inputSchema")),
                )
            )
        return out

    def call_tool(
        self,
        name: str,
        arguments: dict[str, Any] | None = None,
        *,
        timeout: float | None = None,
    ) -> ToolResult:
        result = self.session.call(
            "tools/call",
            {"name": name, "arguments": arguments or {}},
            timeout=timeout,
        )
        return ToolResult.from_payload(result)

"""
Tool Registry — 工具注册表

按名称管理工具；执行永远不抛异常，失败统一包装成 ToolResult。
"""

import logging
from typing import Optional

from .base import Tool, ToolResult

logger = logging.getLogger(__name__)


class ToolRegistry:
    """工具注册表"""

    def __init__(self):
        self._tools: dict[str, Tool] = {}

    def register(self, tool: Tool) -> None:
        if tool.name in self._tools:
            raise ValueError(f"Tool '{tool.name}' already registered")
        self._tools[tool.name] = tool

    def unregister(self, name: str) -> None:
        self._tools.pop(name, None)

    def get(self, name: str) -> Optional[Tool]:
        return self._tools.get(name)

    def has(self, name: str) -> bool:
        return name in self._tools

    def list_all(self) -> list[Tool]:
        return list(self._tools.values())

    def list_names(self) -> list[str]:
        return list(self._tools.keys())

    async def execute(self, tool_name: str, params: Optional[dict] = None) -> ToolResult:
        """执行指定工具"""
        tool = self.get(tool_name)
        if not tool:
            return ToolResult.failure(
                f"Tool '{tool_name}' not found. Available: {', '.join(self.list_names())}",
                error_type="tool_not_found",
            )
        try:
            return await tool.execute(**(params or {}))
        except TypeError as e:
            return ToolResult.failure(f"Invalid parameters for '{tool_name}': {e}", error_type="invalid_params")
        except Exception as e:
            logger.error(f"❌ 工具 {tool_name} 执行失败: {e}")
            return ToolResult.failure(f"Tool '{tool_name}' execution failed: {e}")

    def to_prompt_context(self) -> str:
        """给思考提示用的工具清单"""
        if not self._tools:
            return "(no tools available)"
        return "\n".join(tool.to_prompt_line() for tool in self._tools.values())

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __repr__(self) -> str:
        return f"<ToolRegistry: {len(self._tools)} tools>"

"""
工具系统

实体通过工具对世界（和自己）产生影响。
"""

from .base import Tool, ToolResult
from .registry import ToolRegistry

__all__ = ["Tool", "ToolResult", "ToolRegistry"]

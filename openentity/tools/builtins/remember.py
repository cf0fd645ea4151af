"""
remember — 记下一件事

按类型路由到对应的记忆层，向量在后台生成。
"""

from ...memory import MemoryLayerManager
from ..base import Tool, ToolResult


class RememberTool(Tool):

    def __init__(self, layers: MemoryLayerManager):
        self.layers = layers

    @property
    def name(self) -> str:
        return "remember"

    @property
    def description(self) -> str:
        return "Store something worth remembering (an experience, a learned fact, a decision)."

    @property
    def parameters(self) -> dict:
        return {
            "type": "object",
            "properties": {
                "content": {"type": "string", "description": "What to remember"},
                "type": {"type": "string", "description": "experience | learned | decision | reflection ..."},
                "importance": {"type": "number", "description": "0.0 - 1.0 (default 0.5)"},
            },
            "required": ["content"],
        }

    async def execute(self, **kwargs) -> ToolResult:
        content = (kwargs.get("content") or "").strip()
        if not content:
            return ToolResult.failure("content is required", error_type="invalid_params")

        importance = max(0.0, min(1.0, float(kwargs.get("importance", 0.5))))
        memory = await self.layers.route_to_layer({
            "type": kwargs.get("type") or "experience",
            "content": content,
            "importance": importance,
        })
        return ToolResult(
            success=True,
            output={"id": memory.id, "layer": memory.layer.value},
            metadata={"type": memory.type},
        )

"""
memory_search — 在记忆中搜索

语义检索优先，后端不可用时自动退回关键词搜索。
"""

from ...memory import SemanticMemory
from ..base import Tool, ToolResult


class MemorySearchTool(Tool):

    def __init__(self, semantic: SemanticMemory):
        self.semantic = semantic

    @property
    def name(self) -> str:
        return "memory_search"

    @property
    def description(self) -> str:
        return "Search my memories for experiences or knowledge related to a topic."

    @property
    def parameters(self) -> dict:
        return {
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "What to look for"},
                "limit": {"type": "integer", "description": "Maximum results (default 5)"},
            },
            "required": ["query"],
        }

    async def execute(self, **kwargs) -> ToolResult:
        query = (kwargs.get("query") or "").strip()
        if not query:
            return ToolResult.failure("query is required", error_type="invalid_params")

        limit = int(kwargs.get("limit") or 5)
        memories = await self.semantic.search(query, limit)
        for memory in memories:
            await self.semantic.memories.recall(memory)

        return ToolResult(
            success=True,
            output=[
                {
                    "id": m.id,
                    "type": m.type,
                    "text": m.display_text,
                    "importance": m.importance,
                    "similarity": m.similarity,
                    "created_at": m.created_at.isoformat(),
                }
                for m in memories
            ],
            metadata={"count": len(memories)},
        )

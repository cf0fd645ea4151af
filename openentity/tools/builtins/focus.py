"""
focus — 放进工作记忆
"""

from ...memory import WorkingMemory
from ..base import Tool, ToolResult


class FocusTool(Tool):

    def __init__(self, working: WorkingMemory):
        self.working = working

    @property
    def name(self) -> str:
        return "focus"

    @property
    def description(self) -> str:
        return "Keep a short note in my working memory so I keep thinking about it."

    @property
    def parameters(self) -> dict:
        return {
            "type": "object",
            "properties": {
                "content": {"type": "string", "description": "The note"},
                "importance": {"type": "number", "description": "0.0 - 1.0 (default 0.5)"},
                "category": {"type": "string", "description": "Optional tag, e.g. question, plan"},
            },
            "required": ["content"],
        }

    async def execute(self, **kwargs) -> ToolResult:
        content = (kwargs.get("content") or "").strip()
        if not content:
            return ToolResult.failure("content is required", error_type="invalid_params")

        importance = max(0.0, min(1.0, float(kwargs.get("importance", 0.5))))
        self.working.add(content, importance, kwargs.get("category"))
        return ToolResult(success=True, output=f"Noted: {content}", metadata={"items": len(self.working.get_items())})

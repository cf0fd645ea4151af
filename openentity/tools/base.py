"""
Tool 基类与结果类型

实体能调用的所有工具都继承 Tool，返回统一的 ToolResult。
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class ToolResult:
    """工具执行结果"""
    success: bool
    output: Any = ""
    error: str = ""
    error_type: Optional[str] = None
    metadata: dict = field(default_factory=dict)

    @classmethod
    def failure(cls, message: str, error_type: str = "execution_error", **metadata) -> "ToolResult":
        return cls(success=False, output="", error=message, error_type=error_type, metadata=metadata)

    def to_dict(self) -> dict:
        """{success, result, error: {type, message} | null}"""
        return {
            "success": self.success,
            "result": self.output,
            "error": None if self.success else {
                "type": self.error_type or "execution_error",
                "message": self.error,
            },
        }

    def to_message(self) -> str:
        """转换为给 LLM 的消息文本"""
        if self.success:
            return str(self.output)
        return f"Error: {self.error}\n{self.output}" if self.output else f"Error: {self.error}"


class Tool(ABC):
    """
    工具基类

    通过 @property 定义名称、描述和参数 schema，
    通过 execute() 实现具体逻辑。
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """工具名称（唯一标识，snake_case）"""
        ...

    @property
    @abstractmethod
    def description(self) -> str:
        """工具描述（给 LLM 看的，简洁明了）"""
        ...

    @property
    @abstractmethod
    def parameters(self) -> dict:
        """JSON Schema 参数定义"""
        ...

    @abstractmethod
    async def execute(self, **kwargs) -> ToolResult:
        ...

    def to_prompt_line(self) -> str:
        props = self.parameters.get("properties", {})
        params = ", ".join(props) if props else "-"
        return f"- {self.name}: {self.description} (params: {params})"

    def __repr__(self) -> str:
        return f"<Tool: {self.name}>"

"""
异常体系

外部后端（嵌入 / 生成）的失败可以被降级处理；
维度不匹配属于数据错误，永远直接抛出。
"""


class EntityError(Exception):
    """所有实体异常的基类"""


class EmbeddingBackendError(EntityError):
    """嵌入后端失败（网络 / API）"""


class GenerationBackendError(EntityError):
    """生成后端失败（网络 / API）"""


class DimensionMismatch(EntityError, ValueError):
    """向量维度不一致"""

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(f"Vector dimension mismatch: {expected} vs {actual}")


class NotFoundError(EntityError, LookupError):
    """请求的记录不存在"""

    def __init__(self, kind: str, key):
        self.kind = kind
        self.key = key
        super().__init__(f"{kind} not found: {key}")

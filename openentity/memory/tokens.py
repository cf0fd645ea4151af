"""
记忆系统 - token 估算

约 4 字符 = 1 token；分层上下文和语义检索共用。
"""
import math


def estimate_tokens(text: str) -> int:
    return math.ceil(len(text) / 4)


def truncate_to_budget(text: str, token_budget: int) -> str:
    """超出预算时截断并加省略号；预算为 0 时什么都不留"""
    if token_budget <= 0:
        return ""
    if estimate_tokens(text) <= token_budget:
        return text
    return text[:token_budget * 4] + "..."

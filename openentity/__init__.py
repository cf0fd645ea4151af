"""
OpenEntity - 持续存在的自主实体

记忆分层 + 能量模型 + 思考循环
"""

__version__ = "0.4.0"

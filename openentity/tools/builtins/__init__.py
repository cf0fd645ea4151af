"""
内置工具: memory_search, remember, focus, energy_status, goal
"""

from .energy_status import EnergyStatusTool
from .focus import FocusTool
from .goal import GoalTool
from .memory_search import MemorySearchTool
from .remember import RememberTool

__all__ = ["EnergyStatusTool", "FocusTool", "GoalTool", "MemorySearchTool", "RememberTool"]

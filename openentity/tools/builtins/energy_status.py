"""
energy_status — 查看自己的能量状态
"""

from ...energy import EnergyService
from ..base import Tool, ToolResult


class EnergyStatusTool(Tool):

    def __init__(self, energy: EnergyService):
        self.energy = energy

    @property
    def name(self) -> str:
        return "energy_status"

    @property
    def description(self) -> str:
        return "Check my current energy level and whether I should rest."

    @property
    def parameters(self) -> dict:
        return {"type": "object", "properties": {}}

    async def execute(self, **kwargs) -> ToolResult:
        state = self.energy.get_energy_state()
        state["should_sleep"] = self.energy.should_sleep()
        state["hours_until_depleted"] = round(self.energy.get_hours_until_depleted(), 1)
        return ToolResult(success=True, output=state)

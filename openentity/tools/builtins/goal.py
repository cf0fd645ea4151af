"""
goal — 管理自己的目标

进度增加和完成目标都会恢复一点能量。
"""
from typing import Optional

from ...energy import EnergyService
from ...errors import NotFoundError
from ...memory import Goal, GoalStatus, GoalStore, GoalType
from ..base import Tool, ToolResult

ACTIONS = ("create", "update_progress", "complete", "abandon", "list", "get")


def _goal_output(goal: Goal) -> dict:
    return {
        "id": goal.id,
        "title": goal.title,
        "type": goal.type.value,
        "status": goal.status.value,
        "progress": goal.progress,
        "priority": goal.priority,
    }


class GoalTool(Tool):

    def __init__(self, goals: GoalStore, energy: EnergyService):
        self.goals = goals
        self.energy = energy

    @property
    def name(self) -> str:
        return "goal"

    @property
    def description(self) -> str:
        return "Manage my own goals: create one, record progress, complete or abandon it, list them."

    @property
    def parameters(self) -> dict:
        return {
            "type": "object",
            "properties": {
                "action": {"type": "string", "description": " | ".join(ACTIONS)},
                "goal_id": {"type": "integer", "description": "Required for everything except create and list"},
                "title": {"type": "string", "description": "Goal title (create)"},
                "description": {"type": "string"},
                "motivation": {"type": "string", "description": "Why I want this"},
                "type": {"type": "string", "description": " | ".join(t.value for t in GoalType)},
                "priority": {"type": "number", "description": "0.0 - 1.0 (default 0.5)"},
                "progress": {"type": "integer", "description": "New progress 0 - 100 (update_progress)"},
                "note": {"type": "string", "description": "What happened"},
                "reason": {"type": "string", "description": "Why I give up (abandon)"},
                "status": {"type": "string", "description": "Filter for list"},
            },
            "required": ["action"],
        }

    async def execute(self, **kwargs) -> ToolResult:
        action = kwargs.get("action")
        if action not in ACTIONS:
            return ToolResult.failure(
                f"Unknown action '{action}'. Use one of: {', '.join(ACTIONS)}",
                error_type="invalid_params",
            )

        if action == "create":
            return await self._create(kwargs)
        if action == "list":
            return await self._list(kwargs.get("status"))

        goal_id = kwargs.get("goal_id")
        if goal_id is None:
            return ToolResult.failure("goal_id is required", error_type="invalid_params")
        try:
            goal = await self.goals.get(int(goal_id))
        except NotFoundError as e:
            return ToolResult.failure(str(e), error_type="not_found")

        if action == "get":
            return ToolResult(success=True, output={**_goal_output(goal), "notes": goal.progress_notes})
        if action == "update_progress":
            return await self._update_progress(goal, kwargs)
        if action == "complete":
            return await self._complete(goal, kwargs.get("note"))
        return await self._abandon(goal, kwargs.get("reason"))

    async def _create(self, params: dict) -> ToolResult:
        title = (params.get("title") or "").strip()
        if not title:
            return ToolResult.failure("title is required", error_type="invalid_params")
        try:
            goal_type = GoalType(params.get("type") or GoalType.CURIOSITY.value)
        except ValueError:
            goal_type = GoalType.CURIOSITY

        goal = await self.goals.create(
            title=title,
            description=params.get("description"),
            motivation=params.get("motivation"),
            type=goal_type,
            priority=float(params.get("priority", 0.5)),
        )
        return ToolResult(success=True, output=_goal_output(goal))

    async def _list(self, status: Optional[str]) -> ToolResult:
        try:
            status = GoalStatus(status) if status else None
        except ValueError:
            return ToolResult.failure(f"Unknown status '{status}'", error_type="invalid_params")
        goals = await self.goals.get_all(status)
        return ToolResult(success=True, output=[_goal_output(g) for g in goals], metadata={"count": len(goals)})

    async def _update_progress(self, goal: Goal, params: dict) -> ToolResult:
        if not goal.is_active:
            return ToolResult.failure(f"Goal is {goal.status.value}", error_type="invalid_state")
        if params.get("progress") is None:
            return ToolResult.failure("progress is required", error_type="invalid_params")

        delta = await self.goals.update_progress(goal, int(params["progress"]), params.get("note"))
        if delta > 0:
            self.energy.gain_goal_progress(delta)
        if goal.status == GoalStatus.COMPLETED:
            self.energy.gain_goal_completed(goal.title)
        return ToolResult(success=True, output=_goal_output(goal), metadata={"delta": delta})

    async def _complete(self, goal: Goal, note: Optional[str]) -> ToolResult:
        if goal.status == GoalStatus.COMPLETED:
            return ToolResult(success=True, output=_goal_output(goal), metadata={"already_completed": True})
        await self.goals.complete(goal, note)
        self.energy.gain_goal_completed(goal.title)
        return ToolResult(success=True, output=_goal_output(goal))

    async def _abandon(self, goal: Goal, reason: Optional[str]) -> ToolResult:
        if not goal.is_active and goal.status != GoalStatus.PAUSED:
            return ToolResult.failure(f"Goal is {goal.status.value}", error_type="invalid_state")
        await self.goals.abandon(goal, reason)
        return ToolResult(success=True, output=_goal_output(goal))

"""
实体 - 编排

一次思考周期：
观察 → 分层上下文 → LLM 思考 → 解析 → 记录想法 → （可选）行动

失败的思考周期只是"没有产生想法"，不会让循环崩溃；
失败的对话返回一句道歉，错误放进 metadata。
"""
import json
import logging
from datetime import datetime, timedelta
from typing import List, Optional

from ..cache import CacheStore
from ..energy import EnergyService
from ..llm import LLMService
from ..memory import (
    GoalStore,
    MemoryLayerManager,
    MemoryService,
    Thought,
    ThoughtStore,
    ThoughtType,
    WorkingMemory,
)
from ..messages import render
from ..tools import ToolRegistry, ToolResult
from .personality import PersonalityService

logger = logging.getLogger(__name__)

STATUS_KEY = "entity:status"
STARTED_AT_KEY = "entity:started_at"
LAST_THOUGHT_KEY = "entity:last_thought_at"
STATUS_TTL = timedelta(days=1)

HISTORY_KEEP = 20
HISTORY_SHOWN = 10

# 响应字段（英 / 德）
FIELD_LABELS = {
    "type": ("THOUGHT_TYPE:", "GEDANKEN_TYP:"),
    "intensity": ("INTENSITY:", "INTENSITÄT:"),
    "content": ("THOUGHT:", "GEDANKE:"),
    "wants_action": ("WANTS_ACTION:", "WILL_HANDELN:"),
    "tool_params": ("TOOL_PARAMS:",),
    "tool": ("TOOL:",),
    "action": ("ACTION:", "AKTION:"),
}
YES_VALUES = {"yes", "ja", "true", "1"}
NO_TOOL_VALUES = {"", "none", "keins"}


def parse_thought_response(response: str) -> dict:
    """解析思考响应；缺字段时用默认值"""
    data = {
        "type": ThoughtType.OBSERVATION,
        "intensity": 0.5,
        "content": response,
        "wants_action": False,
        "tool": None,
        "tool_params": {},
        "action": None,
    }

    for line in response.strip().splitlines():
        line = line.strip()
        for field, labels in FIELD_LABELS.items():
            label = next((lbl for lbl in labels if line.startswith(lbl)), None)
            if label is None:
                continue
            value = line[len(label):].strip()

            if field == "type":
                try:
                    data["type"] = ThoughtType(value.lower())
                except ValueError:
                    data["type"] = ThoughtType.OBSERVATION
            elif field == "intensity":
                try:
                    data["intensity"] = max(0.0, min(1.0, float(value)))
                except ValueError:
                    pass
            elif field == "content":
                data["content"] = value
            elif field == "wants_action":
                data["wants_action"] = value.lower() in YES_VALUES
            elif field == "tool":
                data["tool"] = None if value.lower() in NO_TOOL_VALUES else value
            elif field == "tool_params":
                try:
                    params = json.loads(value)
                except json.JSONDecodeError:
                    params = {}
                data["tool_params"] = params if isinstance(params, dict) else {}
            elif field == "action":
                data["action"] = value or None
            break

    return data


class EntityService:
    """实体编排服务"""

    def __init__(
        self,
        cache: CacheStore,
        llm: LLMService,
        memories: MemoryService,
        thoughts: ThoughtStore,
        working: WorkingMemory,
        layers: MemoryLayerManager,
        energy: EnergyService,
        tools: ToolRegistry,
        personality: PersonalityService,
        lang: str = "en",
        goals: Optional[GoalStore] = None,
    ):
        self.cache = cache
        self.llm = llm
        self.memories = memories
        self.thoughts = thoughts
        self.working = working
        self.layers = layers
        self.energy = energy
        self.tools = tools
        self.personality = personality
        self.lang = lang
        self.goals = goals

    # ==================== 状态 ====================

    def get_status(self) -> str:
        return self.cache.get(STATUS_KEY, "sleeping")

    def is_awake(self) -> bool:
        return self.get_status() == "awake"

    def get_uptime(self) -> Optional[int]:
        """醒来后经过的秒数"""
        started_at = self.cache.get(STARTED_AT_KEY)
        if not started_at:
            return None
        return int((self.cache.clock() - datetime.fromisoformat(started_at)).total_seconds())

    def get_last_thought_at(self) -> Optional[str]:
        return self.cache.get(LAST_THOUGHT_KEY)

    def get_personality(self) -> dict:
        return self.personality.get()

    async def get_recent_thoughts(self, limit: int = 10) -> List[Thought]:
        return await self.thoughts.get_recent(limit)

    # ==================== 思考 ====================

    async def think(self) -> Optional[Thought]:
        """一次思考周期；睡着或失败时返回 None"""
        if not self.is_awake():
            return None

        logger.info("🧠 思考周期开始")
        try:
            lang = self.lang
            observations = await self._observe(lang)
            situation = "\n".join(observations)

            context = await self.layers.build_think_context(situation, lang)
            state = self.energy.get_energy_state()
            context += "\n\n" + render(
                "energy.state_line", lang,
                percent=state["percent"], state=state["state"], description=state["description"],
            )

            prompt = render(
                "think.prompt", lang,
                context=context,
                tools=self.tools.to_prompt_context(),
                observations=situation or render("think.quiet", lang),
            )
            response = await self.llm.generate(prompt)
            data = parse_thought_response(response)

            thought = await self.thoughts.create(
                content=data["content"],
                type=data["type"],
                trigger="think_loop",
                context={"observations": observations},
                intensity=data["intensity"],
            )
            self.energy.cost_thought(thought.intensity)

            if data["wants_action"]:
                await self._process_action(thought, data)

            self.cache.put(LAST_THOUGHT_KEY, self.cache.clock().isoformat(), STATUS_TTL)

            # 强烈的好奇心留在工作记忆里
            if thought.type == ThoughtType.CURIOSITY and thought.intensity >= 0.6:
                self.working.add(thought.content, thought.intensity, "question")

            return thought
        except Exception as e:
            logger.error(f"❌ 思考周期失败: {e}", exc_info=True)
            return None

    async def _observe(self, lang: str) -> List[str]:
        """现在发生了什么"""
        observations = []

        state = self.energy.get_energy_state()
        if state["needs_sleep"] or state["state"] in ("tired", "exhausted", "depleted"):
            observations.append(render(
                "think.observation.tired", lang,
                state=state["state"], description=state["description"],
            ))

        for conversation_id in self.working.list_conversations():
            context = self.working.get_conversation_context(conversation_id) or {}
            observations.append(render(
                "think.observation.conversation", lang,
                participant=context.get("participant", "?"),
                channel=context.get("channel", "?"),
            ))

        for item in self.working.get_current_focus(3):
            observations.append(render("think.observation.focus", lang, content=item.content))

        if self.goals is not None:
            for goal in await self.goals.get_active():
                if goal.progress > 0:
                    observations.append(render(
                        "think.observation.goal", lang, title=goal.title, progress=goal.progress,
                    ))

        return observations

    async def _process_action(self, thought: Thought, data: dict):
        tool = data.get("tool")
        action = data.get("action")
        logger.info(f"🤚 想要行动: thought #{thought.id} tool={tool} action={action}")

        if tool and self.tools.has(tool):
            result = await self.execute_tool(tool, data.get("tool_params") or {})
            outcome = "successful" if result.success else "failed"
            await self.thoughts.mark_action(thought, f"Tool '{tool}' executed: {outcome}")
            return

        if action:
            await self.thoughts.mark_action(thought, action)

    # ==================== 对话 ====================

    async def chat(
        self,
        conversation_id: str,
        participant: str,
        message: str,
        channel: str = "web",
    ) -> dict:
        lang = self.lang
        conversation = self.working.get_conversation_context(conversation_id) or {
            "participant": participant,
            "channel": channel,
            "messages": [],
        }

        try:
            context = await self.layers.build_think_context(message, lang)
            prompt = render(
                "chat.prompt", lang,
                context=context,
                participant=participant,
                history=self._format_history(conversation, participant, lang),
                message=message,
                name=self.personality.get_name(),
            )
            response = await self.llm.generate(prompt)
        except Exception as e:
            logger.error(f"❌ 对话失败: {e}")
            return {
                "message": render("chat.apology", lang),
                "thought_process": None,
                "metadata": {"error": str(e)},
            }

        thought = await self.thoughts.create(
            content=f"Conversation with {participant}: {message}",
            type=ThoughtType.OBSERVATION,
            trigger="conversation",
            context={"participant": participant, "channel": channel},
            intensity=0.6,
        )
        self.energy.cost_conversation()

        conversation["messages"] = (conversation.get("messages", []) + [
            {"role": "user", "content": message},
            {"role": "entity", "content": response},
        ])[-HISTORY_KEEP:]
        self.working.set_conversation_context(conversation_id, conversation)

        return {
            "message": response,
            "thought_process": thought.content,
            "metadata": {"thought_id": thought.id},
        }

    def _format_history(self, conversation: dict, participant: str, lang: str) -> str:
        messages = conversation.get("messages", [])[-HISTORY_SHOWN:]
        if not messages:
            return render("chat.new_conversation", lang)
        name = self.personality.get_name()
        return "".join(
            f"{name if m['role'] == 'entity' else participant}: {m['content']}\n"
            for m in messages
        )

    # ==================== 工具 ====================

    async def execute_tool(
        self,
        tool_name: str,
        params: Optional[dict] = None,
        triggered_by: Optional[str] = None,
    ) -> ToolResult:
        params = params or {}
        logger.info(f"🔧 执行工具 {tool_name} {params} (triggered_by={triggered_by})")

        self.energy.cost_tool_execution(tool_name)
        result = await self.tools.execute(tool_name, params)

        if result.success:
            content = (
                f"Tool '{tool_name}' executed (triggered by {triggered_by})"
                if triggered_by
                else f"Tool '{tool_name}' executed autonomously"
            )
            await self.memories.create({
                "type": "experience",
                "content": content,
                "importance": 0.4,
                "context": {
                    "tool": tool_name,
                    "params": params,
                    "result": result.output,
                    "triggered_by": triggered_by,
                },
                "related_entity": triggered_by,
            })

        return result

    # ==================== 睡眠 / 醒来 ====================

    async def wake(self) -> Thought:
        now = self.cache.clock().isoformat()
        self.cache.put(STATUS_KEY, "awake", STATUS_TTL)
        self.cache.put(STARTED_AT_KEY, now, STATUS_TTL)
        self.energy.wake()

        thought = await self.thoughts.create(
            content=render("lifecycle.wake", self.lang),
            type=ThoughtType.OBSERVATION,
            trigger="wake",
            intensity=0.7,
        )
        logger.info("🌅 实体已醒来")
        return thought

    async def sleep(self) -> Thought:
        thought = await self.thoughts.create(
            content=render("lifecycle.sleep", self.lang),
            type=ThoughtType.REFLECTION,
            trigger="sleep",
            intensity=0.5,
        )
        self.cache.put(STATUS_KEY, "sleeping", STATUS_TTL)
        self.cache.forget(STARTED_AT_KEY)
        self.energy.start_sleep()
        logger.info("😴 实体已入睡")
        return thought

"""Agent orchestration for Vibe CLI.

One user turn runs as a small state machine::

    awaiting_user_input -> querying -> extracting_calls
        -> (executing_tool -> awaiting_follow_up -> querying)* -> awaiting_user_input

with ``turn_failed`` reachable from any query or tool step when the model
gateway fails and escalation cannot recover.
"""

import asyncio
import json
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from vibe_cli.config import AgentConfig
from vibe_cli.conversation import Conversation, Message
from vibe_cli.exceptions import GatewayError
from vibe_cli.llm import LLMProvider, QueryOptions
from vibe_cli.logging import get_logger
from vibe_cli.prompt_builder import AgentPromptBuilder
from vibe_cli.tool_calls import ToolCallCandidate, extract_tool_calls
from vibe_cli.tools.registry import ToolExecutionRecord, ToolRegistry, ToolResult

log = get_logger(__name__)

RESULT_PREVIEW_LIMIT = 500
RESULT_PREVIEW_CUT = 490
TRUNCATION_SUFFIX = "... (truncated)"
ACKNOWLEDGEMENT = "I'll check that for you using the {name} tool."
ERROR_REPLY = "Sorry, I encountered an error processing your request. Please try again."


class AgentState(str, Enum):
    AWAITING_USER_INPUT = "awaiting_user_input"
    QUERYING = "querying"
    EXTRACTING_CALLS = "extracting_calls"
    EXECUTING_TOOL = "executing_tool"
    AWAITING_FOLLOW_UP = "awaiting_follow_up"
    TURN_FAILED = "turn_failed"


@dataclass
class TurnOutcome:
    """What one user turn produced."""

    text: str
    failed: bool = False
    escalated: bool = False
    tool_records: list[ToolExecutionRecord] = field(default_factory=list)
    error: str | None = None


def format_tool_feedback(tool_name: str, result: ToolResult) -> str:
    """Render a tool result as the user-role message fed back to the model."""
    if not result.success:
        return f"Tool Error:\n\n{result.error}"
    payload = json.dumps({"success": True, "data": result.data}, ensure_ascii=False, default=str)
    if len(payload) > RESULT_PREVIEW_LIMIT:
        payload = payload[:RESULT_PREVIEW_CUT] + TRUNCATION_SUFFIX
    return f"Tool Result ({tool_name}):\n\n{payload}"


class Agent:
    """Tool-using agent: streams replies and runs the tool calls they contain."""

    def __init__(
        self,
        provider: LLMProvider,
        registry: ToolRegistry,
        conversation: Conversation | None = None,
        prompt_builder: AgentPromptBuilder | None = None,
        delta_callback: Callable[[str], None] | None = None,
        status_callback: Callable[[str], None] | None = None,
        tool_output_callback: Callable[[str, dict[str, Any], str], None] | None = None,
        config: AgentConfig | None = None,
    ):
        """Initialize the agent.

        Args:
            provider: Model gateway used for every query
            registry: Tools the model may call
            conversation: Existing conversation; a fresh one is seeded otherwise
            prompt_builder: System prompt builder
            delta_callback: Receives streamed text deltas of free-text queries
            status_callback: Receives state names on every transition
            tool_output_callback: Receives (tool name, arguments, feedback text)
            config: Agent settings; defaults when omitted
        """
        self.provider = provider
        self.registry = registry
        self.config = config or AgentConfig()
        self.prompt_builder = prompt_builder or AgentPromptBuilder(self.config)
        self.delta_callback = delta_callback
        self.status_callback = status_callback
        self.tool_output_callback = tool_output_callback
        self.conversation = conversation or Conversation(self.build_system_prompt())
        self.state = AgentState.AWAITING_USER_INPUT
        self._turn_lock = asyncio.Lock()

    def build_system_prompt(self) -> str:
        return self.prompt_builder.build_system_message(self.registry.get_definitions())

    def refresh_system_prompt(self) -> None:
        """Rebuild the system message after tools or prompt settings changed."""
        self.conversation.set_system_prompt(self.build_system_prompt())

    async def load_project_instructions(self) -> bool:
        """Read the project instructions file through the loadInstructions tool.

        Returns:
            True when instructions were found and added to the system prompt
        """
        if not self.registry.has("loadInstructions"):
            return False
        result = await self.registry.execute(
            "loadInstructions",
            {"path": self.config.project_instructions_file},
        )
        data = result.data if result.success and isinstance(result.data, dict) else {}
        if not data.get("found") or not data.get("content"):
            log.info("No project instructions found", file=self.config.project_instructions_file)
            return False
        self.prompt_builder.set_project_instructions(str(data["content"]))
        self.refresh_system_prompt()
        log.info("Project instructions loaded", path=data.get("path"))
        return True

    def reset(self) -> None:
        """Forget the conversation, keeping the system message."""
        self.conversation.reset()

    def _set_state(self, state: AgentState) -> None:
        self.state = state
        if self.status_callback:
            try:
                self.status_callback(state.value)
            except Exception as e:
                log.debug("Status callback failed", error=str(e))

    def _emit_delta(self, delta: str) -> None:
        if not self.delta_callback:
            return
        try:
            self.delta_callback(delta)
        except Exception as e:
            log.debug("Delta callback failed", error=str(e))

    def _emit_tool_output(self, tool_name: str, arguments: dict[str, Any], output: str) -> None:
        """Forward tool feedback to the UI callback when configured."""
        if not self.tool_output_callback:
            return
        try:
            self.tool_output_callback(tool_name, arguments, output)
        except Exception as e:
            log.debug("Tool output callback failed", tool=tool_name, error=str(e))

    def _free_text_options(self) -> QueryOptions:
        return QueryOptions(temperature=self.config.tool_temperature, response_format="text")

    def _directed_options(self) -> QueryOptions:
        return QueryOptions(
            temperature=self.config.directed_temperature,
            response_format="json",
            tool_catalog=self.registry.get_definitions(),
            tool_choice="forced",
        )

    async def _query(
        self,
        messages: tuple[Message, ...],
        options: QueryOptions,
        stream_deltas: bool = True,
    ) -> str:
        self._set_state(AgentState.QUERYING)
        stream = self.provider.query(messages, options)
        return await stream.collect(self._emit_delta if stream_deltas else None)

    def _extract(self, text: str) -> list[ToolCallCandidate]:
        self._set_state(AgentState.EXTRACTING_CALLS)
        return extract_tool_calls(text)

    async def _directed_query(self, user_input: str) -> str:
        """Single forced-tool retry with a narrowed prompt."""
        messages = (
            self.conversation.system_message,
            Message("user", self.prompt_builder.build_directed_prompt(user_input)),
        )
        return await self._query(messages, self._directed_options(), stream_deltas=False)

    def _fail_turn(
        self,
        error: GatewayError,
        records: list[ToolExecutionRecord],
        escalated: bool,
    ) -> TurnOutcome:
        self._set_state(AgentState.TURN_FAILED)
        log.error("Turn failed", error=str(error))
        self.conversation.add("assistant", ERROR_REPLY)
        return TurnOutcome(
            text=ERROR_REPLY,
            failed=True,
            escalated=escalated,
            tool_records=records,
            error=str(error),
        )

    async def complete(self, user_input: str, expect_tool: bool | None = None) -> TurnOutcome:
        """Run one user turn to completion.

        Args:
            user_input: The user's message
            expect_tool: Whether an answer without a tool call should be
                escalated; falls back to ``escalate_when_no_tool_call``

        Returns:
            TurnOutcome with the final assistant text
        """
        async with self._turn_lock:
            try:
                return await self._run_turn(user_input, expect_tool)
            finally:
                self._set_state(AgentState.AWAITING_USER_INPUT)

    async def _run_turn(self, user_input: str, expect_tool: bool | None) -> TurnOutcome:
        expects_tool = self.config.escalate_when_no_tool_call if expect_tool is None else expect_tool
        records: list[ToolExecutionRecord] = []
        escalated = False

        self.conversation.add("user", user_input)

        text: str | None = None
        candidates: list[ToolCallCandidate] = []
        first_error: GatewayError | None = None
        try:
            text = await self._query(self.conversation.snapshot(), self._free_text_options())
            candidates = self._extract(text)
        except GatewayError as e:
            first_error = e
            log.warning("Query failed; retrying with a directed tool query", error=str(e))

        if first_error is not None or (not candidates and expects_tool):
            escalated = True
            try:
                directed_text = await self._directed_query(user_input)
            except GatewayError as e:
                return self._fail_turn(e, records, escalated)
            candidates = self._extract(directed_text)
            if text is None:
                text = directed_text

        if not candidates:
            self.conversation.add("assistant", text or "")
            return TurnOutcome(text=text or "", escalated=escalated)

        try:
            final_text = await self._run_tool_calls(candidates, records)
        except GatewayError as e:
            return self._fail_turn(e, records, escalated)
        return TurnOutcome(text=final_text, escalated=escalated, tool_records=records)

    async def _run_tool_calls(
        self,
        candidates: list[ToolCallCandidate],
        records: list[ToolExecutionRecord],
    ) -> str:
        """Execute candidates in order, re-querying after each one.

        Every follow-up is kept as an assistant message. One that asks for
        more tools also queues them while the per-turn budget lasts.
        """
        budget = max(1, self.config.max_tool_calls)
        if len(candidates) > budget:
            log.warning("Dropping tool calls over budget", requested=len(candidates), budget=budget)
        queue: deque[ToolCallCandidate] = deque(candidates[:budget])
        executed = 0
        final_text = ""

        while queue:
            candidate = queue.popleft()
            self._set_state(AgentState.EXECUTING_TOOL)
            record = await self.registry.execute_with_record(candidate.name, candidate.arguments)
            executed += 1
            records.append(record)

            feedback = format_tool_feedback(candidate.name, record.result)
            self._emit_tool_output(candidate.name, candidate.arguments, feedback)
            self.conversation.add("assistant", ACKNOWLEDGEMENT.format(name=candidate.name))
            self.conversation.add("user", feedback)

            self._set_state(AgentState.AWAITING_FOLLOW_UP)
            follow_up = await self._query(self.conversation.snapshot(), self._free_text_options())
            self.conversation.add("assistant", follow_up)
            final_text = follow_up

            chained = self._extract(follow_up)
            room = budget - executed - len(queue)
            if chained and room > 0:
                log.debug("Chaining tool calls", tools=[item.name for item in chained[:room]])
                queue.extend(chained[:room])
            elif chained:
                log.warning("Tool call budget exhausted", budget=budget)

        return final_text


class ChatSession:
    """Plain streaming chat without tools."""

    def __init__(
        self,
        provider: LLMProvider,
        prompt_builder: AgentPromptBuilder | None = None,
        delta_callback: Callable[[str], None] | None = None,
        temperature: float | None = None,
    ):
        self.provider = provider
        self.prompt_builder = prompt_builder or AgentPromptBuilder()
        self.delta_callback = delta_callback
        self.temperature = temperature
        self.conversation = Conversation(self.prompt_builder.build_chat_system_message())
        self._lock = asyncio.Lock()

    def reset(self) -> None:
        self.conversation.reset()

    def _emit_delta(self, delta: str) -> None:
        if not self.delta_callback:
            return
        try:
            self.delta_callback(delta)
        except Exception as e:
            log.debug("Delta callback failed", error=str(e))

    async def send(self, user_input: str) -> TurnOutcome:
        """Send one message and return the streamed reply."""
        async with self._lock:
            self.conversation.add("user", user_input)
            stream = self.provider.query(
                self.conversation.snapshot(),
                QueryOptions(temperature=self.temperature),
            )
            try:
                text = await stream.collect(self._emit_delta)
            except GatewayError as e:
                log.error("Chat query failed", error=str(e))
                self.conversation.add("assistant", ERROR_REPLY)
                return TurnOutcome(text=ERROR_REPLY, failed=True, error=str(e))
            self.conversation.add("assistant", text)
            return TurnOutcome(text=text)

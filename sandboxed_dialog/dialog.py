"""
Dialog orchestrator

Responsible for:
1. Owning conversation memory
2. Serializing requests to the model provider (one in flight at a time)
3. Separating thoughts from visible output
4. Running at most one new tool call per model turn and feeding the result
   back until the turn settles
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Mapping, Sequence

from .exceptions import MessageValidationError
from .messages import (
    AIChunkEvent,
    AIRequestEvent,
    AIResponseEvent,
    AskEvent,
    DialogEvent,
    DoneEvent,
    ErrorEvent,
    Message,
    Role,
    ThoughtChunkEvent,
    ThoughtEvent,
    ToolCallEvent,
    ToolLogEvent,
    ToolResultEvent,
)
from .prompts import create_system_prompt
from .providers import ModelProvider
from .thinking import ParsedChunk, extract_thoughts, parse_thinking_stream
from .tool import FoundToolCall, Tool, ToolResult
from .tooler import Tooler

logger = logging.getLogger(__name__)


class DialogMethod(str, Enum):
    """How replies are received from the provider"""
    STREAM = "stream"  # Token stream with live chunk events
    QUERY = "query"  # One complete reply


@dataclass
class DialogConfig:
    """Dialog configuration"""
    method: DialogMethod = DialogMethod.STREAM

    def __post_init__(self):
        try:
            self.method = DialogMethod(self.method)
        except ValueError:
            raise ValueError(
                "Dialog option 'method' must be either 'stream' or 'query'."
            ) from None


class Dialog:
    """
    Turn-based conversation with tool calling

    ask() only enqueues; a single worker task drains the queue, so requests
    to the provider never overlap. Every step of a turn is reported to
    on_change as a DialogEvent.

    Usage:
        dialog = Dialog(
            provider=AnthropicProvider(api_key="..."),
            tools=[PythonExecTool()],
            system_prompt="You are a helpful assistant.",
            on_change=lambda event: print(event.type),
        )

        await dialog.ask("compute 21*2 and tell me")
    """

    def __init__(
        self,
        provider: ModelProvider,
        tools: Sequence[Tool] | None = None,
        system_prompt: str | None = None,
        on_change: Callable[[DialogEvent], None] | None = None,
        on_error: Callable[[str], None] | None = None,
        config: DialogConfig | None = None
    ):
        self.provider = provider
        self.config = config or DialogConfig()
        self.method = self.config.method
        self.on_change = on_change or (lambda event: None)
        self.on_error = on_error
        self.tooler: Tooler | None = None

        self._memory: list[Message] = []
        self._to_send: list[Message] = []
        self._stopped = False
        self._worker: asyncio.Task | None = None
        self._waiters: list[asyncio.Future] = []

        prompt = system_prompt or ""
        if tools:
            self.tooler = Tooler(
                tools=tools,
                on_handle=self._handle_tool_call,
                on_handled=self._handle_tool_result,
                on_log=self._handle_tool_log
            )
            prompt = create_system_prompt(prompt, self.tooler.get_full_context_preprompt())

        logger.debug(
            f"Initializing Dialog with method: {self.method.value}, "
            f"system prompt length: {len(prompt)} and {len(tools or [])} tools"
        )

        if prompt:
            self._memory.append(Message(role=Role.SYSTEM.value, content=prompt))

    @property
    def memory(self) -> list[Message]:
        return list(self._memory)

    @property
    def pending(self) -> list[Message]:
        """Messages waiting for the next send"""
        return list(self._to_send)

    @property
    def stopped(self) -> bool:
        return self._stopped

    def _emit(self, event: DialogEvent) -> None:
        logger.debug(f"Emitting event: {event.type}")
        self.on_change(event)
        if isinstance(event, ErrorEvent) and self.on_error:
            self.on_error(event.error)

    # ==================== Public API ====================

    def ask(self, message: "str | Message | Mapping[str, Any]") -> "asyncio.Future[None]":
        """
        Queue a message and return a future that resolves once the dialog is
        idle again (all follow-up tool turns done, or the dialog stopped).

        Raises:
            MessageValidationError: message is neither a string nor a valid
                role/content message. An error event is emitted first.
        """
        try:
            user_message = Message.coerce(message)
        except MessageValidationError as e:
            logger.debug(f"Rejected message {message!r}: {e}")
            self._emit(ErrorEvent(error=str(e)))
            raise

        loop = asyncio.get_running_loop()
        logger.debug(f"ask called with content: {user_message.content!r}")
        self._emit(AskEvent(message=user_message))
        self._to_send.append(user_message)

        waiter = loop.create_future()
        self._waiters.append(waiter)
        self._schedule_send()
        return waiter

    def stop(self) -> None:
        """Hold further sends; an in-flight request still completes"""
        logger.debug("stop() called")
        self._stopped = True

    def resume(self) -> None:
        """Lift stop() and send whatever is queued"""
        logger.debug("resume() called")
        self._stopped = False
        if self._to_send:
            self._schedule_send()

    def clear(self) -> None:
        """Drop queued messages and forget everything but the system prompt"""
        logger.debug("clear() called")
        self._to_send = []
        self._memory = [m for m in self._memory if m.role == Role.SYSTEM.value]

    # ==================== Worker ====================

    def _schedule_send(self) -> None:
        if self._worker is None or self._worker.done():
            self._worker = asyncio.get_running_loop().create_task(self._drain())

    async def _drain(self) -> None:
        try:
            while self._to_send and not self._stopped:
                try:
                    await self._send()
                except Exception as e:
                    logger.exception("Error in dialog send loop")
                    self._emit(ErrorEvent(error=str(e)))
        finally:
            waiters, self._waiters = self._waiters, []
            for waiter in waiters:
                if not waiter.done():
                    waiter.set_result(None)

    async def _send(self) -> None:
        messages = [*self._memory, *self._to_send]
        self._memory.extend(self._to_send)
        self._to_send = []

        self._emit(AIRequestEvent(messages=list(messages)))
        logger.info(f"Sending {len(messages)} messages using method {self.method.value}")

        if self.method is DialogMethod.STREAM:
            response = await self._receive_stream(messages)
        else:
            response = await self._receive_query(messages)

        self._emit(AIResponseEvent(content=response))
        self._memory.append(Message(role=Role.ASSISTANT.value, content=response))

        if self.tooler:
            calls = self.tooler.find_new_tool_calls(response)
            if len(calls) > 1:
                logger.warning(
                    f"Found {len(calls)} tool calls, executing only the first one ({calls[0].id})"
                )
            if calls:
                await self.tooler.call(calls[0].full_match)
            else:
                logger.debug("No tool calls found in response")

        # A tool result queues the next send; nothing queued means the turn is over
        if not self._to_send:
            logger.debug("No more messages to send, emitting done")
            self._emit(DoneEvent())

    async def _receive_stream(self, messages: list[Message]) -> str:
        def handle(chunk: ParsedChunk) -> None:
            if chunk.type == "thought_chunk":
                self._emit(ThoughtChunkEvent(chunk=chunk.chunk))
            else:
                self._emit(AIChunkEvent(chunk=chunk.chunk))

        _, response = await parse_thinking_stream(self.provider.stream(messages), handle)
        return response

    async def _receive_query(self, messages: list[Message]) -> str:
        reply = await self.provider.query(messages)
        content = reply if isinstance(reply, str) else Message.coerce(reply).content

        thoughts, visible = extract_thoughts(content)
        for thought in thoughts:
            self._emit(ThoughtEvent(content=thought))
        return visible

    # ==================== Tool callbacks ====================

    def _handle_tool_call(self, call: FoundToolCall) -> None:
        self._emit(ToolCallEvent(
            id=call.id,
            name=call.tool.name,
            command=call.command,
            content=call.content
        ))

    def _handle_tool_log(self, call_id: str, log: Any) -> None:
        self._emit(ToolLogEvent(id=call_id, log=log))

    def _handle_tool_result(self, result: ToolResult) -> None:
        logger.debug(f"Handling tool result for id: {result.id}")
        if result.error is not None:
            result_text = f"Error: {result.error}"
        else:
            result_text = json.dumps(result.result, indent=2, ensure_ascii=False, default=str)

        self._emit(ToolResultEvent(id=result.id, result=result.result, error=result.error))

        self._to_send.append(Message(
            role=Role.USER.value,
            content=(
                f'Tool call with id "{result.id}" has been executed. '
                f"Here is the result in JSON format:\n{result_text}"
            )
        ))
        self._schedule_send()

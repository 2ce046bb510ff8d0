"""ConversationEngine: interleaves completion calls with tool invocations.

State machine::

    AwaitingCompletion --(response has tool calls)--> HasToolCalls
    HasToolCalls --(results appended to history)--> AwaitingCompletion
    AwaitingCompletion --(response has no tool calls)--> Done

Provider- and tool-scoped failures become conversational content: they
are fed back to the model as tool results and shown as error lines in the
output. A failing completion call aborts the whole query.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, assert_never

from toolbridge.core.interface.models import (
    CanonicalMessage,
    ConversationHistory,
    TextSegment,
    ToolCall,
    ToolCallSegment,
    ToolResult,
)
from toolbridge.protocols.errors import (
    BridgeError,
    CompletionServiceError,
    ConnectionNotReadyError,
    InvocationError,
    ToolResolutionError,
)
from toolbridge.utils.telemetry import (
    ATTR_INVOCATIONS,
    ATTR_MAX_ROUNDS,
    ATTR_ROUND,
    get_tracer,
)

if TYPE_CHECKING:
    from toolbridge.core.interface.client import CompletionService
    from toolbridge.core.interface.models import CompletionResponse
    from toolbridge.core.orchestration.catalog import ToolCatalog
    from toolbridge.core.orchestration.pool import ConnectionPool
    from toolbridge.protocols.mcp.models import InvocationResult

logger = logging.getLogger(__name__)

_tracer = get_tracer(__name__)

DEFAULT_MAX_ROUNDS = 10


def trace_line(name: str, arguments: Any) -> str:
    """The user-visible audit line recorded for every tool call."""
    return f"[Calling tool {name} with args {json.dumps(arguments)}]"


def error_line(error: BaseException) -> str:
    return f"[Error: {error}]"


@dataclass
class TurnResult:
    """Everything one :meth:`ConversationEngine.run` produced."""

    text: str
    history: ConversationHistory
    rounds: int
    truncated: bool = False


@dataclass
class _Outcome:
    call: ToolCall
    result: ToolResult
    error: BridgeError | None = None


class ConversationEngine:
    """Runs one query to completion against a catalog and a pool.

    Usage::

        engine = ConversationEngine(model_client, catalog, pool)
        answer = await engine.process_query("add 2 and 3")
    """

    def __init__(
        self,
        service: CompletionService,
        catalog: ToolCatalog,
        pool: ConnectionPool,
        *,
        max_rounds: int = DEFAULT_MAX_ROUNDS,
        parallel_invocations: bool = False,
        system_prompt: str | None = None,
    ) -> None:
        if max_rounds < 1:
            msg = "max_rounds must be at least 1"
            raise ValueError(msg)
        self.service = service
        self.catalog = catalog
        self.pool = pool
        self.max_rounds = max_rounds
        self.parallel_invocations = parallel_invocations
        self.system_prompt = system_prompt

    async def process_query(self, user_text: str) -> str:
        """Answer *user_text*, calling tools as the model requests them.

        Returns every text segment and tool trace line, one per line, in
        emission order.

        Raises:
            CompletionServiceError: If the model backend call fails.
        """
        result = await self.run(user_text)
        return result.text

    async def run(self, user_text: str) -> TurnResult:
        """Like :meth:`process_query` but also returns the history."""
        history = ConversationHistory()
        if self.system_prompt:
            history.append(CanonicalMessage.system(self.system_prompt))
        history.append(CanonicalMessage.user(user_text))

        output: list[str] = []
        tools = self.catalog.export_for_completion_service() or None
        rounds = 0

        while True:
            with _tracer.start_as_current_span("engine.round") as span:
                span.set_attribute(ATTR_ROUND, rounds)
                span.set_attribute(ATTR_MAX_ROUNDS, self.max_rounds)

                response = await self._complete(history, tools)
                calls = self._collect(response, output)
                span.set_attribute(ATTR_INVOCATIONS, len(calls))

                if not calls:
                    if response.text:
                        history.append(CanonicalMessage.assistant(response.text))
                    return TurnResult(text="\n".join(output), history=history, rounds=rounds)

                if rounds >= self.max_rounds:
                    logger.warning("Stopping query after %d tool rounds", rounds)
                    output.append(f"[Stopped after {rounds} tool rounds]")
                    return TurnResult(
                        text="\n".join(output), history=history, rounds=rounds, truncated=True
                    )

                outcomes = await self._dispatch(calls)
                self._record(response.text, outcomes, history, output)
                rounds += 1

    async def _complete(
        self,
        history: ConversationHistory,
        tools: list[dict[str, Any]] | None,
    ) -> CompletionResponse:
        try:
            return await self.service.complete(history, tools)
        except CompletionServiceError:
            raise
        except Exception as exc:
            raise CompletionServiceError(str(exc) or exc.__class__.__name__) from exc

    @staticmethod
    def _collect(response: CompletionResponse, output: list[str]) -> list[ToolCall]:
        """Append text to *output* and return tool calls, both in emission order."""
        calls: list[ToolCall] = []
        for segment in response.segments:
            if isinstance(segment, TextSegment):
                if segment.text:
                    output.append(segment.text)
            elif isinstance(segment, ToolCallSegment):
                calls.append(segment.call)
            else:
                assert_never(segment)
        return calls

    async def _dispatch(self, calls: list[ToolCall]) -> list[_Outcome]:
        """Execute one round of calls; results come back in request order."""
        if self.parallel_invocations:
            return list(await asyncio.gather(*(self._execute(call) for call in calls)))
        return [await self._execute(call) for call in calls]

    async def _execute(self, call: ToolCall) -> _Outcome:
        """Resolve and invoke a single call, converting failures into results."""
        try:
            result = await self._invoke(call)
        except (ToolResolutionError, InvocationError) as exc:
            logger.warning("Tool call %s failed: %s", call.name, exc)
            return _Outcome(
                call=call,
                result=ToolResult.from_text(call.id, f"Error: {exc}", is_error=True),
                error=exc,
            )
        return _Outcome(
            call=call,
            result=ToolResult.from_text(call.id, result.content, is_error=result.is_error),
        )

    async def _invoke(self, call: ToolCall) -> InvocationResult:
        resolved = self.catalog.resolve(call.name)
        if resolved is None:
            raise ToolResolutionError(call.name)
        provider, raw_name = resolved

        if call.parse_error:
            raise InvocationError(call.name, call.parse_error)
        tool = self.catalog.lookup(provider, raw_name)
        problems = tool.validate_arguments(call.arguments) if tool else []
        if problems:
            raise InvocationError(call.name, "; ".join(problems))

        conn = self.pool.get(provider)
        if conn is None:
            raise ConnectionNotReadyError(provider, call.name)
        return await conn.invoke(raw_name, call.arguments, request_id=call.id)

    @staticmethod
    def _record(
        text: str,
        outcomes: list[_Outcome],
        history: ConversationHistory,
        output: list[str],
    ) -> None:
        """Append each call and its result to history, pairwise and in order."""
        for i, outcome in enumerate(outcomes):
            call = outcome.call
            history.append(CanonicalMessage.assistant(text if i == 0 else "", tool_calls=[call]))
            history.append(CanonicalMessage.tool(outcome.result))
            if isinstance(outcome.error, ToolResolutionError):
                output.append(error_line(outcome.error))
                continue
            output.append(trace_line(call.name, call.arguments))
            if outcome.error is not None:
                output.append(error_line(outcome.error))

"""Tests for the ConversationEngine tool-calling loop."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from toolbridge.config.models import ProviderConfig
from toolbridge.core.interface.models import CompletionResponse, ToolCall
from toolbridge.core.orchestration.catalog import ToolCatalog
from toolbridge.core.orchestration.engine import ConversationEngine, error_line, trace_line
from toolbridge.core.orchestration.pool import ConnectionPool
from toolbridge.protocols.errors import CompletionServiceError, ToolResolutionError
from toolbridge.protocols.mcp.connection import ProviderConnection

if TYPE_CHECKING:
    from collections.abc import Callable

    from conftest import FakeFleet, ScriptedService

    from toolbridge.protocols.mcp.models import RawTool


async def _engine(
    fleet: FakeFleet,
    service: ScriptedService,
    **kwargs: Any,
) -> ConversationEngine:
    pool = await fleet.start_pool()
    return ConversationEngine(service, ToolCatalog.build(pool), pool, **kwargs)


class TestLines:
    def test_trace_line(self) -> None:
        assert trace_line("add", {"a": 2, "b": 3}) == '[Calling tool add with args {"a": 2, "b": 3}]'

    def test_error_line(self) -> None:
        assert error_line(ToolResolutionError("x")) == "[Error: Unknown tool: x]"


class TestScenarios:
    async def test_single_provider_round_trip(
        self,
        fleet: FakeFleet,
        tool: Callable[..., RawTool],
        make_service: Callable[..., ScriptedService],
    ) -> None:
        fleet.add("calc", tool("add", a="integer", b="integer"), handler=lambda n, a: str(a["a"] + a["b"]))
        service = make_service(
            CompletionResponse.of(ToolCall(id="call-1", name="add", arguments={"a": 2, "b": 3})),
            CompletionResponse.of("The result is 5"),
        )
        engine = await _engine(fleet, service)

        answer = await engine.process_query("add 2 and 3")

        assert answer == '[Calling tool add with args {"a": 2, "b": 3}]\nThe result is 5'
        follow_up, _ = service.calls[1]
        result = follow_up.tool_result("call-1")
        assert result is not None
        assert result.text == "5"
        assert not result.is_error

    async def test_colliding_tools_reach_their_own_provider(
        self,
        fleet: FakeFleet,
        tool: Callable[..., RawTool],
        make_service: Callable[..., ScriptedService],
    ) -> None:
        fleet.add("calc", tool("lookup"))
        fleet.add("search", tool("lookup"))
        service = make_service(
            CompletionResponse.of(ToolCall(id="c1", name="search.lookup")),
            CompletionResponse.of("done"),
        )
        engine = await _engine(fleet, service)

        await engine.process_query("find it")

        assert engine.catalog.names() == ["calc.lookup", "search.lookup"]
        assert fleet.built["search"].invocations == [("lookup", {})]
        assert fleet.built["calc"].invocations == []
        result = service.calls[1][0].tool_result("c1")
        assert result is not None
        assert result.text == "search:lookup"

    async def test_failed_provider_surfaces_conversationally(
        self,
        fleet: FakeFleet,
        tool: Callable[..., RawTool],
        make_service: Callable[..., ScriptedService],
    ) -> None:
        fleet.add("calc", tool("add"))
        fleet.add("search", tool("web"))
        fleet.add("flaky", tool("fetch"), launch_error="exited with code 1")
        pool = await fleet.start_pool()
        catalog = ToolCatalog.build(pool)
        service = make_service(
            CompletionResponse.of(ToolCall(id="c1", name="flaky.fetch")),
            CompletionResponse.of("Sorry, that tool is unavailable."),
        )
        engine = ConversationEngine(service, catalog, pool)

        answer = await engine.process_query("fetch something")

        assert not any(name.startswith("flaky") for name in catalog.names())
        assert answer.splitlines() == [
            "[Error: Unknown tool: flaky.fetch]",
            "Sorry, that tool is unavailable.",
        ]
        result = service.calls[1][0].tool_result("c1")
        assert result is not None
        assert result.is_error

    async def test_two_calls_answered_in_order_before_follow_up(
        self,
        fleet: FakeFleet,
        tool: Callable[..., RawTool],
        make_service: Callable[..., ScriptedService],
    ) -> None:
        fleet.add("calc", tool("add"), tool("sub"))
        service = make_service(
            CompletionResponse.of(
                "Working on it",
                ToolCall(id="first", name="add"),
                ToolCall(id="second", name="sub"),
            ),
            CompletionResponse.of("Both done"),
        )
        engine = await _engine(fleet, service)

        answer = await engine.process_query("do both")

        assert answer.splitlines() == [
            "Working on it",
            "[Calling tool add with args {}]",
            "[Calling tool sub with args {}]",
            "Both done",
        ]
        history, _ = service.calls[1]
        first = history.index_of_result("first")
        second = history.index_of_result("second")
        assert first is not None
        assert second is not None
        assert first < second
        assert fleet.built["calc"].invocations == [("add", {}), ("sub", {})]


class TestHistory:
    async def test_each_call_paired_with_its_result(
        self,
        fleet: FakeFleet,
        tool: Callable[..., RawTool],
        make_service: Callable[..., ScriptedService],
    ) -> None:
        fleet.add("calc", tool("add"), tool("sub"))
        service = make_service(
            CompletionResponse.of("thinking", ToolCall(id="a", name="add"), ToolCall(id="b", name="sub")),
            CompletionResponse.of("ok"),
        )
        engine = await _engine(fleet, service)

        result = await engine.run("go")

        roles = [m.role for m in result.history]
        assert roles == ["user", "assistant", "tool", "assistant", "tool", "assistant"]
        messages = result.history.messages
        assert messages[1].text == "thinking"
        assert messages[1].tool_calls is not None
        assert messages[1].tool_calls[0].id == "a"
        assert messages[2].tool_call_id == "a"
        assert messages[3].text == ""
        assert messages[4].tool_call_id == "b"
        assert messages[5].text == "ok"
        assert result.rounds == 1
        assert not result.truncated

    async def test_system_prompt_leads_history(
        self,
        fleet: FakeFleet,
        make_service: Callable[..., ScriptedService],
    ) -> None:
        service = make_service(CompletionResponse.of("hi"))
        engine = await _engine(fleet, service, system_prompt="Be brief.")

        await engine.process_query("hello")

        history, _ = service.calls[0]
        assert [m.role for m in history] == ["system", "user"]
        assert history.messages[0].text == "Be brief."

    async def test_tools_sent_every_round(
        self,
        fleet: FakeFleet,
        tool: Callable[..., RawTool],
        make_service: Callable[..., ScriptedService],
    ) -> None:
        fleet.add("calc", tool("add"))
        service = make_service(
            CompletionResponse.of(ToolCall(name="add")),
            CompletionResponse.of("done"),
        )
        engine = await _engine(fleet, service)

        await engine.process_query("go")

        first_tools = service.calls[0][1]
        second_tools = service.calls[1][1]
        assert first_tools is not None
        assert first_tools == second_tools
        assert first_tools[0]["function"]["name"] == "add"

    async def test_empty_catalog_sends_no_tools(
        self,
        fleet: FakeFleet,
        make_service: Callable[..., ScriptedService],
    ) -> None:
        service = make_service(CompletionResponse.of("plain answer"))
        engine = await _engine(fleet, service)

        answer = await engine.process_query("hello")

        assert answer == "plain answer"
        assert service.calls[0][1] is None


class TestFailures:
    async def test_invalid_arguments_not_sent_to_provider(
        self,
        fleet: FakeFleet,
        tool: Callable[..., RawTool],
        make_service: Callable[..., ScriptedService],
    ) -> None:
        fleet.add("calc", tool("add", a="integer", b="integer"))
        service = make_service(
            CompletionResponse.of(ToolCall(id="c1", name="add", arguments={"a": "two"})),
            CompletionResponse.of("Let me fix that."),
        )
        engine = await _engine(fleet, service)

        answer = await engine.process_query("add")

        lines = answer.splitlines()
        assert lines[0] == '[Calling tool add with args {"a": "two"}]'
        assert lines[1].startswith("[Error: ")
        assert "missing required argument 'b'" in lines[1]
        assert "argument 'a' must be of type integer" in lines[1]
        assert fleet.built["calc"].invocations == []
        result = service.calls[1][0].tool_result("c1")
        assert result is not None
        assert result.is_error

    async def test_prefixed_name_validated_with_single_provider(
        self,
        fleet: FakeFleet,
        tool: Callable[..., RawTool],
        make_service: Callable[..., ScriptedService],
    ) -> None:
        fleet.add("calc", tool("add", a="integer", b="integer"), handler=lambda n, a: "5")
        service = make_service(
            CompletionResponse.of(
                ToolCall(id="c1", name="calc.add", arguments={"a": 2}),
                ToolCall(id="c2", name="calc.add", arguments={"a": 2, "b": 3}),
            ),
            CompletionResponse.of("done"),
        )
        engine = await _engine(fleet, service)

        answer = await engine.process_query("add")

        assert "missing required argument 'b'" in answer.splitlines()[1]
        assert fleet.built["calc"].invocations == [("add", {"a": 2, "b": 3})]
        result = service.calls[1][0].tool_result("c2")
        assert result is not None
        assert result.text == "5"

    async def test_unparseable_arguments(
        self,
        fleet: FakeFleet,
        tool: Callable[..., RawTool],
        make_service: Callable[..., ScriptedService],
    ) -> None:
        fleet.add("calc", tool("add"))
        service = make_service(
            CompletionResponse.of(
                ToolCall(id="c1", name="add", parse_error="arguments are not valid JSON: oops")
            ),
            CompletionResponse.of("retrying"),
        )
        engine = await _engine(fleet, service)

        answer = await engine.process_query("add")

        assert "arguments are not valid JSON" in answer
        assert fleet.built["calc"].invocations == []

    async def test_provider_error_becomes_tool_result(
        self,
        fleet: FakeFleet,
        tool: Callable[..., RawTool],
        make_service: Callable[..., ScriptedService],
    ) -> None:
        fleet.add("calc", tool("add"))
        service = make_service(
            CompletionResponse.of(ToolCall(id="c1", name="add")),
            CompletionResponse.of("It failed."),
        )
        engine = await _engine(fleet, service)
        # Provider drops out after the catalog was built.
        fleet.built["calc"].ready = False

        answer = await engine.process_query("add")

        assert answer.splitlines() == [
            "[Calling tool add with args {}]",
            "[Error: Tool invocation failed: add: provider 'calc' is not ready]",
            "It failed.",
        ]

    async def test_malformed_provider_result_becomes_tool_result(
        self, make_service: Callable[..., ScriptedService]
    ) -> None:
        transport = MagicMock()
        transport.connect = AsyncMock()
        transport.close = AsyncMock()
        transport.send = AsyncMock()
        transport.receive = AsyncMock(
            side_effect=[
                {"jsonrpc": "2.0", "id": 1, "result": {}},
                {"jsonrpc": "2.0", "id": 2, "result": {"tools": [{"name": "add"}]}},
                {"jsonrpc": "2.0", "id": 3, "result": {"content": ["5"]}},
            ]
        )
        pool = ConnectionPool()
        with patch.object(ProviderConnection, "_create_transport", return_value=transport):
            await pool.start_all([ProviderConfig(name="calc", command="python3")])
        service = make_service(
            CompletionResponse.of(ToolCall(id="c1", name="add")),
            CompletionResponse.of("The tool misbehaved."),
        )
        engine = ConversationEngine(service, ToolCatalog.build(pool), pool)

        answer = await engine.process_query("hi")

        assert answer.splitlines() == [
            "[Calling tool add with args {}]",
            "[Error: Tool invocation failed: add: malformed tools/call result]",
            "The tool misbehaved.",
        ]
        result = service.calls[1][0].tool_result("c1")
        assert result is not None
        assert result.is_error

    async def test_completion_failure_propagates(
        self,
        fleet: FakeFleet,
        make_service: Callable[..., ScriptedService],
    ) -> None:
        service = make_service(CompletionServiceError("rate limited"))
        engine = await _engine(fleet, service)

        with pytest.raises(CompletionServiceError, match="rate limited"):
            await engine.process_query("hello")

    async def test_unexpected_backend_exception_is_wrapped(
        self,
        fleet: FakeFleet,
        make_service: Callable[..., ScriptedService],
    ) -> None:
        service = make_service(ConnectionResetError("peer reset"))
        engine = await _engine(fleet, service)

        with pytest.raises(CompletionServiceError, match="peer reset") as exc_info:
            await engine.process_query("hello")
        assert isinstance(exc_info.value.__cause__, ConnectionResetError)


class TestLimits:
    async def test_stops_after_max_rounds(
        self,
        fleet: FakeFleet,
        tool: Callable[..., RawTool],
        make_service: Callable[..., ScriptedService],
    ) -> None:
        fleet.add("calc", tool("add"))
        service = make_service(*(CompletionResponse.of(ToolCall(name="add")) for _ in range(3)))
        engine = await _engine(fleet, service, max_rounds=2)

        result = await engine.run("loop forever")

        assert result.truncated
        assert result.rounds == 2
        assert result.text.splitlines()[-1] == "[Stopped after 2 tool rounds]"
        assert len(fleet.built["calc"].invocations) == 2
        assert len(service.calls) == 3

    def test_max_rounds_must_be_positive(self, make_service: Callable[..., ScriptedService]) -> None:
        with pytest.raises(ValueError, match="max_rounds"):
            ConversationEngine(make_service(), ToolCatalog({}), None, max_rounds=0)  # type: ignore[arg-type]

    async def test_parallel_invocations_keep_request_order(
        self,
        fleet: FakeFleet,
        tool: Callable[..., RawTool],
        make_service: Callable[..., ScriptedService],
    ) -> None:
        fleet.add("calc", tool("slow"), tool("fast"))
        service = make_service(
            CompletionResponse.of(ToolCall(id="s", name="slow"), ToolCall(id="f", name="fast")),
            CompletionResponse.of("done"),
        )
        engine = await _engine(fleet, service, parallel_invocations=True)
        provider = fleet.built["calc"]
        real_invoke = provider.invoke

        async def delayed(name: str, arguments: dict[str, Any], *, request_id: str = "") -> Any:
            if name == "slow":
                await asyncio.sleep(0.02)
            return await real_invoke(name, arguments, request_id=request_id)

        provider.invoke = delayed  # type: ignore[method-assign]

        answer = await engine.process_query("both")

        assert provider.invocations == [("fast", {}), ("slow", {})]
        assert answer.splitlines()[:2] == [
            "[Calling tool slow with args {}]",
            "[Calling tool fast with args {}]",
        ]
        history, _ = service.calls[1]
        slow_at = history.index_of_result("s")
        fast_at = history.index_of_result("f")
        assert slow_at is not None
        assert fast_at is not None
        assert slow_at < fast_at

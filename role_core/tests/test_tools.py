import asyncio

import pytest

from role_core.domain.exceptions import ErrorKind, UnknownToolError
from role_core.tools.definitions import ToolCall, ToolDef, ToolParam
from role_core.tools.executor import ToolExecutor
from role_core.tools.registry import ToolRegistry


def _echo_def(description="Echo the text back."):
    return ToolDef(
        name="echo",
        description=description,
        params={"text": ToolParam(name="text", description="Text", required=True, schema={"type": "string"})},
    )


def test_lookup_after_register_returns_definition():
    reg = ToolRegistry()
    definition = _echo_def()
    reg.register(definition, lambda args: args["text"])
    assert reg.get("echo") is definition
    assert reg.list_all() == [definition]
    assert reg.get("missing") is None


def test_register_same_name_last_wins():
    reg = ToolRegistry()
    first, second = _echo_def("first"), _echo_def("second")
    reg.register(first, lambda args: 1)
    reg.register(second, lambda args: 2)
    assert reg.get("echo") is second
    assert len(reg) == 1


def test_tool_def_json_schema():
    schema = _echo_def().json_schema()
    assert schema == {
        "type": "object",
        "properties": {"text": {"type": "string", "description": "Text"}},
        "required": ["text"],
    }


@pytest.mark.asyncio
async def test_execute_unknown_tool_raises():
    te = ToolExecutor(ToolRegistry())
    with pytest.raises(UnknownToolError) as exc:
        await te.execute("nope", {})
    assert exc.value.kind is ErrorKind.UNKNOWN_TOOL


@pytest.mark.asyncio
async def test_execute_returns_raw_value_and_normalizes_failures():
    reg = ToolRegistry()
    reg.register(_echo_def(), lambda args: {"echo": args["text"]})

    def boom(args):
        raise RuntimeError("disk on fire")

    reg.register(ToolDef(name="boom", description="Fails.", params={}), boom)
    te = ToolExecutor(reg)

    assert await te.execute("echo", {"text": "hi"}) == {"echo": "hi"}
    assert await te.execute("boom", {}) == "Error: disk on fire"


@pytest.mark.asyncio
async def test_execute_async_tool_times_out():
    async def slow(args):
        await asyncio.sleep(1)

    reg = ToolRegistry()
    reg.register(ToolDef(name="slow", description="Slow.", params={}), slow)
    te = ToolExecutor(reg, timeout=0.01)
    result = await te.execute("slow", {})
    assert result.startswith("Error: ") and "timed out" in result


@pytest.mark.asyncio
async def test_execute_calls_isolates_each_call():
    reg = ToolRegistry()
    reg.register(_echo_def(), lambda args: {"echo": args["text"]})
    te = ToolExecutor(reg)
    calls = [
        ToolCall(id="1", name="missing", arguments="{}"),
        ToolCall(id="2", name="echo", arguments="{not json"),
        ToolCall(id="3", name="echo", arguments='{"text": "你好"}'),
    ]
    results = await te.execute_calls(calls)

    assert [r.call_id for r in results] == ["1", "2", "3"]
    assert results[0].success is False and "Tool not found: missing" in results[0].output
    assert results[1].success is False and results[1].output.startswith("Error: ")
    assert results[2].success is True
    assert results[2].output == '{"echo": "你好"}'

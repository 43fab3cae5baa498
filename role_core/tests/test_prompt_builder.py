import pytest

from role_core.domain.exceptions import ValidationError
from role_core.prompts.builder import RolePromptBuilder, format_available_tools, parse_role
from role_core.prompts.roles import RoleId
from role_core.sandbox import sandbox_tool_defs
from role_core.tools.definitions import ToolDef


def test_parse_role_rejects_unknown():
    assert parse_role("coder") is RoleId.CODER
    with pytest.raises(ValidationError) as exc:
        parse_role("wizard")
    assert exc.value.code == "UNKNOWN_ROLE"


def test_available_tools_sorted_with_first_sentence():
    tools = [
        ToolDef(name="zeta", description="Last one. More detail here.", params={}),
        ToolDef(name="alpha", description="First one. Ignored tail.", params={}),
    ]
    assert format_available_tools(tools) == (
        "<available_tools>\n- alpha: First one\n- zeta: Last one\n</available_tools>"
    )


@pytest.mark.asyncio
async def test_build_orders_sections(sandbox, tmp_path):
    (tmp_path / "main.py").write_text("print('hi')\n", encoding="utf-8")
    prompt = await RolePromptBuilder(sandbox).build(
        RoleId.CODER,
        "Add a CLI flag",
        context="Existing project",
        related_files=["main.py"],
        role_args={"language": "Python", "tests": True},
        tools=sandbox_tool_defs(),
    )

    system = prompt.system
    order = [
        system.index("<role>"),
        system.index("<task>Add a CLI flag</task>"),
        system.index("<context>Existing project</context>"),
        system.index("<related_files>"),
        system.index("<language>Python</language>"),
        system.index("<available_tools>"),
        system.index("<instructions>"),
    ]
    assert order == sorted(order)
    assert '<file path="main.py">\nprint(\'hi\')\n\n</file>' in system
    assert "<tests>true</tests>" in system
    assert "<architecture>" not in system
    assert "5. Follow best practices for Python" in system
    assert "6. Include appropriate tests for your solution" in system
    assert "<file_operation>" in system and "Supported commands: read_file, write_file" in system
    assert prompt.user == "Add a CLI flag"
    assert prompt.files == ["main.py"]


@pytest.mark.asyncio
async def test_unreadable_related_file_is_skipped(sandbox, tmp_path):
    (tmp_path / "ok.md").write_text("ok", encoding="utf-8")
    prompt = await RolePromptBuilder(sandbox).build(
        RoleId.SUMMARIZER,
        "Summarize",
        related_files=["../outside.md", "ok.md"],
    )
    assert prompt.files == ["ok.md"]
    assert "outside.md" not in prompt.system
    assert "<context>" not in prompt.system


@pytest.mark.asyncio
async def test_custom_role_uses_persona_and_validates_args(sandbox):
    prompt = await RolePromptBuilder(sandbox).build(
        RoleId.CUSTOM, "Review this", role_args={"role": "You are a security auditor."}
    )
    assert prompt.system.startswith("<role>You are a security auditor.</role>")

    with pytest.raises(ValidationError) as exc:
        await RolePromptBuilder(sandbox).build(RoleId.CUSTOM, "Review this")
    assert exc.value.code == "INVALID_ROLE_ARGS"


@pytest.mark.asyncio
async def test_literal_role_args_are_checked(sandbox):
    with pytest.raises(ValidationError):
        await RolePromptBuilder(sandbox).build(RoleId.QA, "Plan", role_args={"test_type": "fuzz"})

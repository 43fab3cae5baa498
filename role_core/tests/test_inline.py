import json

import pytest

from role_core.domain.exceptions import MalformedInlineCommandError
from role_core.inline.parser import find_blocks, parse_block
from role_core.inline.processor import InlineCommandProcessor, process_file_operations
from role_core.sandbox import FileSystemSandbox, SandboxContext


def test_parse_block_multiline_content_and_trailing_flag():
    body = "\ncommand: write_file\npath: notes/a.md\ncontent:\n# Title\n\nbody line\nallowoverwrite: true\n"
    cmd = parse_block(body)
    assert cmd.command == "write_file"
    assert cmd.path == "notes/a.md"
    assert cmd.content == "# Title\n\nbody line"
    assert cmd.flag("allowoverwrite") is True
    assert cmd.flag("recursive") is None


def test_parse_block_inline_content_value():
    cmd = parse_block("command: search_codebase\npath: .\ncontent: TODO\nrecursive: false")
    assert cmd.content == "TODO"
    assert cmd.flag("recursive") is False


def test_parse_block_requires_command_and_path():
    with pytest.raises(MalformedInlineCommandError) as exc:
        parse_block("command: read_file\n")
    assert "Must include command and path" in exc.value.message
    with pytest.raises(MalformedInlineCommandError):
        parse_block("just some prose\n")


def test_find_blocks_ignores_unclosed_marker():
    text = "a <file_operation>command: x\npath: y</file_operation> b <file_operation> dangling"
    blocks = find_blocks(text)
    assert len(blocks) == 1
    assert text[blocks[0].end:] == " b <file_operation> dangling"


@pytest.mark.asyncio
async def test_blocks_replaced_in_place_and_isolated(sandbox, tmp_path):
    (tmp_path / "in.txt").write_text("hello", encoding="utf-8")
    text = (
        "Intro.\n"
        "<file_operation>\ncommand: read_file\npath: in.txt\n</file_operation>\n"
        "Middle.\n"
        "<file_operation>\ncommand: read_file\n</file_operation>\n"
        "Then.\n"
        "<file_operation>\ncommand: write_file\npath: out/new.txt\ncontent:\nline 1\nline 2\n</file_operation>\n"
        "Outro."
    )

    out = await InlineCommandProcessor(sandbox).process(text)

    assert out.startswith("Intro.\n<file_operation_result command=\"read_file\" path=\"in.txt\">\n")
    assert '"content": "hello"' in out
    assert "\nMiddle.\n<file_operation_error>\nError: Invalid file operation format." in out
    assert '<file_operation_result command="write_file" path="out/new.txt">' in out
    assert out.endswith("</file_operation_result>\nOutro.")
    assert "<file_operation>" not in out
    assert (tmp_path / "out" / "new.txt").read_text(encoding="utf-8") == "line 1\nline 2"


@pytest.mark.asyncio
async def test_unknown_command_becomes_error_block(sandbox):
    out = await process_file_operations(
        "<file_operation>\ncommand: rm_rf\npath: .\n</file_operation>", sandbox
    )
    assert out == "<file_operation_error>\nError: Unknown command: rm_rf\n</file_operation_error>"


@pytest.mark.asyncio
async def test_access_denied_becomes_error_block(sandbox):
    out = await process_file_operations(
        "<file_operation>\ncommand: read_file\npath: ../../etc/passwd\n</file_operation>", sandbox
    )
    assert out.startswith("<file_operation_error>\nError: Access denied")


@pytest.mark.asyncio
async def test_write_conflict_reports_diff_unless_overwrite(tmp_path):
    (tmp_path / "a.txt").write_text("old", encoding="utf-8")
    sandbox = FileSystemSandbox(SandboxContext(root=tmp_path))
    block = "<file_operation>\ncommand: write_file\npath: a.txt\ncontent:\nnew\n{flag}</file_operation>"

    out = await process_file_operations(block.format(flag=""), sandbox)
    payload = json.loads(out.split("\n", 1)[1].rsplit("\n", 1)[0])
    assert payload["success"] is False
    assert payload["fileExists"] is True
    assert payload["existingContent"] == "old"
    assert (tmp_path / "a.txt").read_text(encoding="utf-8") == "old"

    out = await process_file_operations(block.format(flag="allowoverwrite: true\n"), sandbox)
    assert '"success": true' in out
    assert (tmp_path / "a.txt").read_text(encoding="utf-8") == "new"


@pytest.mark.asyncio
async def test_request_level_overwrite_applies_without_flag(tmp_path):
    (tmp_path / "a.txt").write_text("old", encoding="utf-8")
    sandbox = FileSystemSandbox(SandboxContext(root=tmp_path, allow_overwrite=True))
    await process_file_operations(
        "<file_operation>\ncommand: write_file\npath: a.txt\ncontent:\nnew\n</file_operation>", sandbox
    )
    assert (tmp_path / "a.txt").read_text(encoding="utf-8") == "new"


@pytest.mark.asyncio
async def test_text_without_blocks_is_unchanged(sandbox):
    text = "No operations here."
    assert await process_file_operations(text, sandbox) == text


def test_trailing_flag_lines_only_belong_to_commands_that_read_them():
    body = "command: write_file\npath: c.yaml\ncontent:\nname: x\nrecursive: true\n"
    cmd = parse_block(body)
    assert cmd.content == "name: x\nrecursive: true"
    assert "recursive" not in cmd.fields

    search = parse_block("command: find_files\npath: *.py\ncontent:\nallowoverwrite: true\nrecursive: false\n")
    assert search.flag("recursive") is False
    assert search.content == "allowoverwrite: true"


@pytest.mark.asyncio
async def test_written_file_keeps_flag_like_last_line(sandbox, tmp_path):
    await process_file_operations(
        "<file_operation>\ncommand: write_file\npath: c.yaml\ncontent:\nname: x\nrecursive: true\n"
        "allowoverwrite: false\n</file_operation>",
        sandbox,
    )
    assert (tmp_path / "c.yaml").read_text(encoding="utf-8") == "name: x\nrecursive: true"

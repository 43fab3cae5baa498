"""内联命令处理：执行模型输出中的 <file_operation> 块并把结果替换回文本。

- 成功：替换为 ``<file_operation_result command=".." path="..">`` + JSON 结果。
- 格式错误 / 未知命令 / 执行抛错：替换为 ``<file_operation_error>`` + 错误文本。

每个块独立处理，一个块失败不影响其余块；替换按记录的偏移拼接，
块之外的文本保持原样。
"""

import json
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from role_core.domain.exceptions import UnknownInlineCommandError
from role_core.infrastructure.logging.logger import log_event
from role_core.sandbox.filesystem import FileSystemSandbox
from .parser import InlineBlock, InlineCommand, find_blocks, parse_block


Dispatch = Callable[[FileSystemSandbox, InlineCommand], Awaitable[Dict[str, Any]]]


def _recursive(cmd: InlineCommand) -> bool:
    flag = cmd.flag("recursive")
    return True if flag is None else flag


INLINE_COMMANDS: Dict[str, Dispatch] = {
    "read_file": lambda sb, c: sb.read_file(c.path),
    "write_file": lambda sb, c: sb.write_file(c.path, c.content or "", allow_overwrite=c.flag("allowoverwrite")),
    "create_directory": lambda sb, c: sb.create_directory(c.path),
    "delete_file": lambda sb, c: sb.delete_file(c.path),
    "delete_directory": lambda sb, c: sb.delete_directory(c.path),
    "list_directory": lambda sb, c: sb.list_directory(c.path),
    "search_codebase": lambda sb, c: sb.search_codebase(c.content or c.path, recursive=_recursive(c)),
    "find_files": lambda sb, c: sb.find_files(c.path, recursive=_recursive(c)),
    "get_file_info": lambda sb, c: sb.get_file_info(c.path),
}


def format_result(command: str, path: str, result: Any) -> str:
    body = json.dumps(result, indent=2, ensure_ascii=False)
    return f'<file_operation_result command="{command}" path="{path}">\n{body}\n</file_operation_result>'


def format_error(message: str) -> str:
    return f"<file_operation_error>\nError: {message}\n</file_operation_error>"


class InlineCommandProcessor:
    def __init__(self, sandbox: FileSystemSandbox):
        self._sandbox = sandbox

    async def process(self, text: str, log_ctx: Optional[Dict[str, Any]] = None) -> str:
        ctx = log_ctx or {}
        blocks = find_blocks(text)
        if not blocks:
            return text
        pieces = []
        cursor = 0
        for block in blocks:
            pieces.append(text[cursor:block.start])
            pieces.append(await self._render(block, ctx))
            cursor = block.end
        pieces.append(text[cursor:])
        log_event(logging.INFO, "Processed inline file operations", ctx, blocks=len(blocks))
        return "".join(pieces)

    async def _render(self, block: InlineBlock, log_ctx: Dict[str, Any]) -> str:
        try:
            cmd = parse_block(block.body)
            dispatch = INLINE_COMMANDS.get(cmd.command)
            if dispatch is None:
                raise UnknownInlineCommandError(cmd.command)
            result = await dispatch(self._sandbox, cmd)
        except Exception as e:
            log_event(logging.ERROR, "Error processing file operation", log_ctx, error=str(e))
            return format_error(str(e))
        if cmd.command == "write_file" and result.get("fileExists") and not result.get("success"):
            log_event(logging.WARNING, "File exists and overwrite not allowed", log_ctx, path=cmd.path)
        return format_result(cmd.command, cmd.path, result)


async def process_file_operations(
    text: str,
    sandbox: FileSystemSandbox,
    log_ctx: Optional[Dict[str, Any]] = None,
) -> str:
    return await InlineCommandProcessor(sandbox).process(text, log_ctx)

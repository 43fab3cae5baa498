"""角色提示词组装。

一次请求生成一段 XML 风格的 system 指令，依次包含：

1. <role>：角色人设。
2. <task> / <context>：任务与补充背景。
3. <related_files>：相关文件的路径与原文（通过 sandbox 读取，读取失败只记日志并跳过）。
4. 角色专属参数：每个已填写参数一个同名标签。
5. <available_tools>：按名称排序的工具目录，每项只保留描述的第一句。
6. <instructions>：角色分步指令 + 内联 <file_operation> 命令语法。
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from pydantic import ValidationError as PydanticValidationError

from role_core.domain.exceptions import BusinessError, ValidationError
from role_core.infrastructure.logging.logger import log_event
from role_core.inline.processor import INLINE_COMMANDS
from role_core.prompts import load_template
from role_core.prompts.roles import ROLE_ARGS, RoleArgs, RoleId, role_description, role_instructions
from role_core.sandbox.filesystem import FileSystemSandbox
from role_core.tools.definitions import ToolDef


@dataclass
class BuiltPrompt:
    system: str
    user: str
    files: List[str]


def parse_role(role: str) -> RoleId:
    try:
        return RoleId(role)
    except ValueError:
        raise ValidationError(code="UNKNOWN_ROLE", message=f"Unknown role: {role!r}")


def validate_role_args(role: RoleId, raw: Dict[str, Any]) -> RoleArgs:
    try:
        return ROLE_ARGS[role].model_validate(raw)
    except PydanticValidationError as e:
        raise ValidationError(code="INVALID_ROLE_ARGS", message=str(e), role=role.value)


def format_available_tools(tools: Sequence[ToolDef]) -> str:
    lines = ["<available_tools>"]
    for tool in sorted(tools, key=lambda t: t.name):
        summary = (tool.description or "").split(".")[0].strip()
        lines.append(f"- {tool.name}: {summary}")
    lines.append("</available_tools>")
    return "\n".join(lines)


def _format_value(value: Any) -> str:
    return value if isinstance(value, str) else json.dumps(value, ensure_ascii=False)


class RolePromptBuilder:
    def __init__(self, sandbox: FileSystemSandbox):
        self._sandbox = sandbox

    async def read_related_files(
        self,
        paths: Sequence[str],
        log_ctx: Optional[Dict[str, Any]] = None,
    ) -> List[Tuple[str, str]]:
        files: List[Tuple[str, str]] = []
        for path in paths:
            try:
                result = await self._sandbox.read_file(path)
            except (BusinessError, OSError) as e:
                log_event(logging.WARNING, "Failed to read related file", log_ctx or {}, path=path, error=str(e))
                continue
            files.append((path, result.get("content", "")))
        return files

    async def build(
        self,
        role: RoleId,
        task: str,
        context: str = "",
        related_files: Sequence[str] = (),
        role_args: Optional[Dict[str, Any]] = None,
        tools: Sequence[ToolDef] = (),
        log_ctx: Optional[Dict[str, Any]] = None,
    ) -> BuiltPrompt:
        args = validate_role_args(role, role_args or {})
        files = await self.read_related_files(related_files, log_ctx)

        parts = [f"<role>{role_description(role, args)}</role>", f"<task>{task}</task>"]
        if context:
            parts.append(f"<context>{context}</context>")
        if files:
            body = "\n".join(f'<file path="{path}">\n{content}\n</file>' for path, content in files)
            parts.append(f"<related_files>\n{body}\n</related_files>")

        arg_lines = [
            f"<{key}>{_format_value(value)}</{key}>"
            for key, value in args.model_dump(exclude_none=True).items()
            if value != ""
        ]
        if arg_lines:
            parts.append("\n".join(arg_lines))
        parts.append(format_available_tools(tools))

        inline_help = load_template("file_operations").format(commands=", ".join(INLINE_COMMANDS))
        parts.append(f"<instructions>\n{role_instructions(role, args)}\n\n{inline_help.strip()}\n</instructions>")

        log_event(
            logging.INFO,
            "Built role prompt",
            log_ctx or {},
            role=role.value,
            related_files=len(files),
            tools=len(tools),
        )
        return BuiltPrompt(system="\n\n".join(parts), user=task, files=[p for p, _ in files])

"""内联命令块的扫描与解析。

块语法（逐字兼容）::

    <file_operation>
    command: <name>
    path: <relative path>
    content: <optional>
    allowoverwrite: <optional true|false>
    </file_operation>

find_blocks 一次性记录所有不重叠块的 (start, end) 偏移，替换在全部块收集完之后进行。
parse_block 是显式的逐行状态机：

- HEADER：读取 ``key: value`` 行，空行忽略；遇到非 key 行视为格式错误。
- CONTENT：``content:`` 之后的所有行原样收集（首行可与 ``content:`` 同行）。
  块尾的空行，以及该命令支持的标记行（write_file 的 allowoverwrite、
  search_codebase / find_files 的 recursive），会从内容中剥离并作为 key 解析。
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, List, Optional

from role_core.domain.exceptions import MalformedInlineCommandError


START_MARKER = "<file_operation>"
END_MARKER = "</file_operation>"

# 各命令可写在 content 之后的标记行；其他命令的同名行属于内容本身
TRAILING_FLAG_KEYS: Dict[str, FrozenSet[str]] = {
    "write_file": frozenset({"allowoverwrite"}),
    "search_codebase": frozenset({"recursive"}),
    "find_files": frozenset({"recursive"}),
}

_KEY_LINE = re.compile(r"^\s*([A-Za-z_]+)\s*:(.*)$")


@dataclass(frozen=True)
class InlineBlock:
    start: int
    end: int
    body: str


@dataclass
class InlineCommand:
    command: str
    path: str
    content: Optional[str] = None
    fields: Dict[str, str] = field(default_factory=dict)

    def flag(self, key: str) -> Optional[bool]:
        """读取 true/false 标记；未提供时返回 None。"""

        raw = self.fields.get(key)
        if raw is None or raw == "":
            return None
        return raw.strip().lower() == "true"


class _State(Enum):
    HEADER = "header"
    CONTENT = "content"


def find_blocks(text: str) -> List[InlineBlock]:
    blocks: List[InlineBlock] = []
    pos = 0
    while True:
        start = text.find(START_MARKER, pos)
        if start < 0:
            break
        body_start = start + len(START_MARKER)
        end = text.find(END_MARKER, body_start)
        if end < 0:
            # 未闭合的起始标记保持原样
            break
        blocks.append(InlineBlock(start=start, end=end + len(END_MARKER), body=text[body_start:end]))
        pos = end + len(END_MARKER)
    return blocks


def parse_block(body: str) -> InlineCommand:
    state = _State.HEADER
    fields: Dict[str, str] = {}
    content_lines: List[str] = []

    for line in body.splitlines():
        if state is _State.CONTENT:
            content_lines.append(line)
            continue
        if not line.strip():
            continue
        match = _KEY_LINE.match(line)
        if not match:
            raise MalformedInlineCommandError(f"Invalid file operation line: {line.strip()!r}")
        key, value = match.group(1).lower(), match.group(2)
        if key == "content":
            state = _State.CONTENT
            if value.strip():
                content_lines.append(value.lstrip())
            continue
        fields[key] = value.strip()

    content: Optional[str] = None
    if state is _State.CONTENT:
        trailing = TRAILING_FLAG_KEYS.get(fields.get("command", ""), frozenset())
        while content_lines:
            tail = content_lines[-1]
            match = _KEY_LINE.match(tail)
            if not tail.strip():
                content_lines.pop()
            elif match and match.group(1).lower() in trailing:
                fields[match.group(1).lower()] = match.group(2).strip()
                content_lines.pop()
            else:
                break
        content = "\n".join(content_lines).strip()

    command = fields.pop("command", "")
    path = fields.pop("path", "")
    if not command or not path:
        raise MalformedInlineCommandError("Invalid file operation format. Must include command and path.")
    return InlineCommand(command=command, path=path, content=content, fields=fields)

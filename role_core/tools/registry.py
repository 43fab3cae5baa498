"""工具注册表：按名称保存 ToolDef 及其实现。

同名重复注册时以最后一次为准，并记录 warning。
"""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from role_core.infrastructure.logging.logger import logger
from .definitions import ToolDef


ToolFunc = Callable[[Dict[str, Any]], Union[Any, Awaitable[Any]]]


@dataclass(frozen=True)
class RegisteredTool:
    definition: ToolDef
    func: ToolFunc


class ToolRegistry:
    def __init__(self) -> None:
        self._tools: Dict[str, RegisteredTool] = {}

    def register(self, definition: ToolDef, func: ToolFunc) -> None:
        if definition.name in self._tools:
            logger.warning(
                "Tool re-registered, previous definition replaced",
                extra={"extra": {"tool_name": definition.name}},
            )
            # 重新插入以保持“最后注册”的顺序
            del self._tools[definition.name]
        self._tools[definition.name] = RegisteredTool(definition=definition, func=func)

    def get(self, name: str) -> Optional[ToolDef]:
        entry = self._tools.get(name)
        return entry.definition if entry else None

    def get_func(self, name: str) -> Optional[ToolFunc]:
        entry = self._tools.get(name)
        return entry.func if entry else None

    def list_all(self) -> List[ToolDef]:
        return [entry.definition for entry in self._tools.values()]

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

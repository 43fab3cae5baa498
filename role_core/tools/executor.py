"""工具执行器。

- execute(name, args): 按名称执行单个工具；未注册抛 UnknownToolError，
  实现抛出的异常被转成 "Error: ..." 文本返回，成功时原样返回实现的结果。
- execute_calls(calls): 编排循环使用的批量入口，逐个顺序执行一轮中的全部
  ToolCall，每个调用彼此隔离，结果统一序列化为字符串。
"""

import asyncio
import inspect
import json
import logging
from typing import Any, Dict, List, Optional

from role_core.config.settings import settings
from role_core.domain.exceptions import UnknownToolError
from role_core.infrastructure.logging.logger import log_event
from .definitions import ToolCall, ToolResult
from .registry import ToolRegistry


ERROR_PREFIX = "Error: "


def serialize_output(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False, default=str)


class ToolExecutor:
    def __init__(self, registry: ToolRegistry, timeout: Optional[float] = None):
        self._registry = registry
        self._timeout = timeout if timeout is not None else settings.tool_timeout

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    async def execute(self, name: str, args: Dict[str, Any]) -> Any:
        func = self._registry.get_func(name)
        if func is None:
            raise UnknownToolError(name)
        try:
            result = func(args)
            if inspect.isawaitable(result):
                result = await asyncio.wait_for(result, timeout=self._timeout)
            return result
        except asyncio.TimeoutError:
            return f"{ERROR_PREFIX}Tool '{name}' timed out after {self._timeout}s"
        except Exception as e:
            return f"{ERROR_PREFIX}{e}"

    async def execute_calls(
        self,
        calls: List[ToolCall],
        log_ctx: Optional[Dict[str, Any]] = None,
    ) -> List[ToolResult]:
        ctx = log_ctx or {}
        results: List[ToolResult] = []
        for call in calls:
            log_event(
                logging.INFO,
                "Tool call received",
                ctx,
                tool_name=call.name,
                tool_call_id=call.id,
            )
            try:
                args = call.parsed_arguments()
                value = await self.execute(call.name, args)
                output = serialize_output(value)
                success = not (isinstance(value, str) and value.startswith(ERROR_PREFIX))
            except (ValueError, UnknownToolError) as e:
                # json.JSONDecodeError 是 ValueError 的子类
                output = f"{ERROR_PREFIX}{e}"
                success = False
            log_event(
                logging.INFO if success else logging.WARNING,
                "Tool execution finished",
                ctx,
                tool_call_id=call.id,
                success=success,
                result_preview=output[:200],
            )
            results.append(ToolResult(call_id=call.id, success=success, output=output, name=call.name))
        return results

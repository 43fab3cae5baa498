"""Anthropic Messages API 适配器。

协议要点：

1. system 是独立字段，不放在 messages 里。
2. 工具目录：``tools: [{name, description, input_schema}]``。
3. 响应 content 是 text / tool_use 块交错的列表，这里按顺序展平成 ToolCall。
4. 工具结果：一条 user 消息，内含本轮全部 ``tool_result{tool_use_id, content}`` 块。

该适配器自带工具循环（orchestration = "self"），以响应中是否仍有 tool_use 块
作为继续条件；编排器检测到标记后直接委托给 run_tool_loop。
"""

import json
import logging
from typing import Any, Dict, List, Optional
from uuid import uuid4

from role_core.domain.exceptions import BackendUnavailableError, BusinessError, MaxIterationsExceededError
from role_core.domain.models import ChatMessage, ConversationState, NormalizedResponse, RequestOptions
from role_core.flows.progress import notify_progress
from role_core.infrastructure.logging.logger import log_event, logger
from role_core.tools.definitions import ToolCall, ToolDef, ToolResult
from role_core.tools.executor import ToolExecutor
from .registry import BackendCredentials
from .transport import RESPONSE_ERRORS, failure_response, parse_usage, post_json


ANTHROPIC_VERSION = "2023-06-01"

_TOOL_CHOICE = {
    "auto": {"type": "auto"},
    "required": {"type": "any"},
    "none": {"type": "none"},
}


class AnthropicClient:
    """Anthropic 协议适配器（self-orchestrating）。"""

    orchestration = "self"

    def __init__(self, credentials: BackendCredentials):
        self._cred = credentials
        self.name = credentials.provider

    async def send_turn(
        self,
        state: ConversationState,
        tools: List[ToolDef],
        options: RequestOptions,
    ) -> NormalizedResponse:
        state.tools = list(tools)
        state.options = options
        return await self._request(self._build_messages(state), state)

    async def send_tool_results(
        self,
        state: ConversationState,
        tool_results: List[ToolResult],
    ) -> NormalizedResponse:
        messages = self._build_messages(state)
        messages.append(self._tool_results_message(tool_results))
        return await self._request(messages, state)

    async def run_tool_loop(
        self,
        state: ConversationState,
        tools: List[ToolDef],
        executor: ToolExecutor,
        options: RequestOptions,
        *,
        max_iterations: int,
        on_progress=None,
    ) -> NormalizedResponse:
        """Anthropic 自己的工具循环：响应带工具调用时执行并回传结果，与编排器的终止条件一致。"""

        log_ctx: Dict[str, Any] = {"trace_id": f"tr-{uuid4().hex}", "provider": self.name}
        response = await self.send_turn(state, tools, options)
        iteration = 1
        await notify_progress(on_progress, iteration, response, log_ctx)
        if not response.success:
            raise BackendUnavailableError(self.name, response.error or "unknown error")

        while self._wants_tools(response):
            if iteration >= max_iterations:
                log_event(logging.ERROR, "Tool loop exceeded max iterations", log_ctx, max_iterations=max_iterations)
                raise MaxIterationsExceededError(max_iterations)
            state.append(ChatMessage(role="assistant", content=response.content, tool_calls=response.tool_calls))
            results = await executor.execute_calls(response.tool_calls, log_ctx)
            response = await self.send_tool_results(state, results)
            state.append(ChatMessage(role="tool", content="", tool_results=results))
            iteration += 1
            await notify_progress(on_progress, iteration, response, log_ctx)
            if not response.success:
                return NormalizedResponse(success=False, content=f"Error: {response.error}", error=response.error)

        log_event(logging.INFO, "Tool loop finished", log_ctx, iterations=iteration)
        return response

    @staticmethod
    def _wants_tools(response: NormalizedResponse) -> bool:
        return bool(response.tool_calls)

    async def _request(self, messages: List[Dict[str, Any]], state: ConversationState) -> NormalizedResponse:
        payload = self._build_payload(messages, state)
        logger.info(
            "Calling backend",
            extra={"extra": {"provider": self.name, "model": payload["model"], "message_count": len(messages)}},
        )
        try:
            data = await post_json(
                f"{self._cred.base_url}/messages",
                payload,
                headers={
                    "x-api-key": self._cred.api_key,
                    "anthropic-version": ANTHROPIC_VERSION,
                    "Content-Type": "application/json",
                },
                timeout=self._cred.timeout,
                provider=self.name,
            )
            return self._parse_response(data)
        except (BusinessError, *RESPONSE_ERRORS) as e:
            return failure_response(self.name, e)

    def _build_payload(self, messages: List[Dict[str, Any]], state: ConversationState) -> Dict[str, Any]:
        opts = state.options
        payload: Dict[str, Any] = {
            "model": opts.model or self._cred.model,
            "max_tokens": opts.max_tokens or self._cred.max_tokens,
            "temperature": self._cred.temperature if opts.temperature is None else opts.temperature,
            "messages": messages,
        }
        if state.system:
            payload["system"] = state.system
        if state.tools:
            payload["tools"] = [
                {"name": t.name, "description": t.description, "input_schema": t.json_schema()}
                for t in state.tools
            ]
            payload["tool_choice"] = _TOOL_CHOICE[opts.tool_choice]
        return payload

    def _build_messages(self, state: ConversationState) -> List[Dict[str, Any]]:
        messages: List[Dict[str, Any]] = []
        for turn in state.turns:
            if turn.role == "tool":
                messages.append(self._tool_results_message(turn.tool_results or []))
            elif turn.role == "assistant":
                blocks: List[Dict[str, Any]] = []
                if turn.content:
                    blocks.append({"type": "text", "text": turn.content})
                for call in turn.tool_calls or []:
                    blocks.append({
                        "type": "tool_use",
                        "id": call.id,
                        "name": call.name,
                        "input": self._parse_arguments(call.arguments),
                    })
                messages.append({"role": "assistant", "content": blocks or turn.content})
            elif turn.role == "user":
                messages.append({"role": "user", "content": turn.content})
        return messages

    @staticmethod
    def _tool_results_message(results: List[ToolResult]) -> Dict[str, Any]:
        return {
            "role": "user",
            "content": [
                {
                    "type": "tool_result",
                    "tool_use_id": r.call_id,
                    "content": r.output,
                    **({} if r.success else {"is_error": True}),
                }
                for r in results
            ],
        }

    @staticmethod
    def _parse_arguments(raw: str) -> Dict[str, Any]:
        """回放历史 tool_use 时需要对象形式；无法解析时保留原始字符串到 `_raw`。"""

        try:
            value = json.loads(raw or "{}")
        except json.JSONDecodeError:
            return {"_raw": raw}
        return value if isinstance(value, dict) else {"_raw": raw}

    def _parse_response(self, data: Dict[str, Any]) -> NormalizedResponse:
        texts: List[str] = []
        tool_calls: List[ToolCall] = []
        for idx, block in enumerate(data.get("content") or []):
            kind = block.get("type")
            if kind == "text":
                texts.append(block.get("text") or "")
            elif kind == "tool_use":
                tool_calls.append(
                    ToolCall(
                        id=block.get("id") or f"toolu_{idx}",
                        name=block.get("name") or "",
                        arguments=json.dumps(block.get("input") or {}, ensure_ascii=False),
                    )
                )
        stop_reason: Optional[str] = data.get("stop_reason")
        return NormalizedResponse(
            success=True,
            content="".join(texts),
            tool_calls=tool_calls,
            stop_reason=stop_reason,
            usage=parse_usage(data.get("usage"), "input_tokens", "output_tokens"),
            raw=data,
        )

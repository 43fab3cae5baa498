"""OpenAI Chat Completions 适配器（同时用于 OpenAI 兼容的 xAI Grok）。

协议要点：

1. 工具目录：``tools: [{type: "function", function: {name, description, parameters}}]``。
2. 工具调用：``choices[0].message.tool_calls`` 是一个扁平数组，每项带 id。
3. 工具结果：紧跟在 assistant 消息之后，每个结果一条 ``role: "tool"`` 消息，
   通过 tool_call_id 关联；一轮的全部结果放在同一个后续请求里。
"""

import json
from typing import Any, Dict, List

from role_core.domain.exceptions import BusinessError
from role_core.domain.models import ChatMessage, ConversationState, NormalizedResponse, RequestOptions
from role_core.infrastructure.logging.logger import logger
from role_core.tools.definitions import ToolCall, ToolDef, ToolResult
from .registry import BackendCredentials
from .transport import RESPONSE_ERRORS, failure_response, parse_usage, post_json


class OpenAIClient:
    """OpenAI 协议适配器（generic，由编排器驱动工具循环）。"""

    orchestration = "generic"

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
        messages.extend(self._tool_result_payload(r) for r in tool_results)
        return await self._request(messages, state)

    async def _request(self, messages: List[Dict[str, Any]], state: ConversationState) -> NormalizedResponse:
        payload = self._build_payload(messages, state)
        logger.info(
            "Calling backend",
            extra={"extra": {"provider": self.name, "model": payload["model"], "message_count": len(messages)}},
        )
        try:
            data = await post_json(
                f"{self._cred.base_url}/chat/completions",
                payload,
                headers={
                    "Authorization": f"Bearer {self._cred.api_key}",
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
            "messages": messages,
            "temperature": self._cred.temperature if opts.temperature is None else opts.temperature,
            "max_tokens": opts.max_tokens or self._cred.max_tokens,
        }
        if state.tools:
            payload["tools"] = [self._serialize_tool(tool) for tool in state.tools]
            payload["tool_choice"] = opts.tool_choice
        return payload

    @staticmethod
    def _serialize_tool(tool: ToolDef) -> Dict[str, Any]:
        """把内部的 ToolDef 转成 function tool 描述。"""

        return {
            "type": "function",
            "function": {
                "name": tool.name,
                "description": tool.description,
                "parameters": tool.json_schema(),
            },
        }

    def _build_messages(self, state: ConversationState) -> List[Dict[str, Any]]:
        messages: List[Dict[str, Any]] = []
        if state.system:
            messages.append({"role": "system", "content": state.system})
        for turn in state.turns:
            messages.extend(self._message_to_payload(turn))
        return messages

    def _message_to_payload(self, message: ChatMessage) -> List[Dict[str, Any]]:
        if message.role == "tool":
            return [self._tool_result_payload(r) for r in message.tool_results or []]
        payload: Dict[str, Any] = {"role": message.role, "content": message.content or None}
        if message.tool_calls:
            payload["tool_calls"] = [
                {
                    "id": call.id,
                    "type": "function",
                    "function": {"name": call.name, "arguments": call.arguments or "{}"},
                }
                for call in message.tool_calls
            ]
        elif payload["content"] is None:
            payload["content"] = ""
        return [payload]

    @staticmethod
    def _tool_result_payload(result: ToolResult) -> Dict[str, Any]:
        return {"role": "tool", "tool_call_id": result.call_id, "content": result.output}

    def _parse_response(self, data: Dict[str, Any]) -> NormalizedResponse:
        choice = (data.get("choices") or [{}])[0]
        msg = choice.get("message") or {}
        tool_calls: List[ToolCall] = []
        for idx, call in enumerate(msg.get("tool_calls") or []):
            func = call.get("function") or {}
            tool_calls.append(
                ToolCall(
                    id=call.get("id") or f"call_{idx}",
                    name=func.get("name") or "",
                    arguments=self._raw_arguments(func.get("arguments")),
                )
            )
        return NormalizedResponse(
            success=True,
            content=msg.get("content") or "",
            tool_calls=tool_calls,
            stop_reason=choice.get("finish_reason"),
            usage=parse_usage(data.get("usage"), "prompt_tokens", "completion_tokens"),
            raw=data,
        )

    @staticmethod
    def _raw_arguments(raw: Any) -> str:
        """arguments 通常是 JSON 字符串；个别兼容实现直接返回对象。"""

        if raw is None:
            return "{}"
        if isinstance(raw, str):
            return raw
        return json.dumps(raw, ensure_ascii=False)

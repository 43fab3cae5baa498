"""Google Gemini generateContent 适配器。

协议要点：

1. 对话为 ``contents: [{role: "user"|"model", parts: [...]}]``，system 走 systemInstruction。
2. 工具目录：``tools: [{functionDeclarations: [{name, description, parameters}]}]``。
3. 工具调用是 model parts 中的 ``functionCall{name, args}``，通常不带 id，
   这里按 ``<name>_<序号>`` 合成关联 id。
4. 工具结果：一条 user content，内含本轮全部 ``functionResponse{name, response}`` parts。
"""

import itertools
import json
from typing import Any, Dict, List

from role_core.domain.exceptions import BusinessError
from role_core.domain.models import ConversationState, NormalizedResponse, RequestOptions
from role_core.infrastructure.logging.logger import logger
from role_core.tools.definitions import ToolCall, ToolDef, ToolResult
from .registry import BackendCredentials
from .transport import RESPONSE_ERRORS, failure_response, parse_usage, post_json


_CALLING_MODE = {"auto": "AUTO", "required": "ANY", "none": "NONE"}


class GoogleClient:
    """Gemini 协议适配器（generic，由编排器驱动工具循环）。"""

    orchestration = "generic"

    def __init__(self, credentials: BackendCredentials):
        self._cred = credentials
        self.name = credentials.provider
        self._call_seq = itertools.count(1)

    async def send_turn(
        self,
        state: ConversationState,
        tools: List[ToolDef],
        options: RequestOptions,
    ) -> NormalizedResponse:
        state.tools = list(tools)
        state.options = options
        return await self._request(self._build_contents(state), state)

    async def send_tool_results(
        self,
        state: ConversationState,
        tool_results: List[ToolResult],
    ) -> NormalizedResponse:
        contents = self._build_contents(state)
        contents.append(self._function_responses(tool_results))
        return await self._request(contents, state)

    async def _request(self, contents: List[Dict[str, Any]], state: ConversationState) -> NormalizedResponse:
        payload = self._build_payload(contents, state)
        model = state.options.model or self._cred.model
        logger.info(
            "Calling backend",
            extra={"extra": {"provider": self.name, "model": model, "message_count": len(contents)}},
        )
        try:
            data = await post_json(
                f"{self._cred.base_url}/models/{model}:generateContent",
                payload,
                headers={
                    "x-goog-api-key": self._cred.api_key,
                    "Content-Type": "application/json",
                },
                timeout=self._cred.timeout,
                provider=self.name,
            )
            return self._parse_response(data)
        except (BusinessError, *RESPONSE_ERRORS) as e:
            return failure_response(self.name, e)

    def _build_payload(self, contents: List[Dict[str, Any]], state: ConversationState) -> Dict[str, Any]:
        opts = state.options
        payload: Dict[str, Any] = {
            "contents": contents,
            "generationConfig": {
                "temperature": self._cred.temperature if opts.temperature is None else opts.temperature,
                "maxOutputTokens": opts.max_tokens or self._cred.max_tokens,
            },
        }
        if state.system:
            payload["systemInstruction"] = {"parts": [{"text": state.system}]}
        if state.tools:
            payload["tools"] = [{"functionDeclarations": [self._serialize_tool(t) for t in state.tools]}]
            payload["toolConfig"] = {"functionCallingConfig": {"mode": _CALLING_MODE[opts.tool_choice]}}
        return payload

    @staticmethod
    def _serialize_tool(tool: ToolDef) -> Dict[str, Any]:
        schema = tool.json_schema()
        if not schema["required"]:
            # Gemini 不接受空的 required 数组
            schema.pop("required")
        return {"name": tool.name, "description": tool.description, "parameters": schema}

    def _build_contents(self, state: ConversationState) -> List[Dict[str, Any]]:
        contents: List[Dict[str, Any]] = []
        for turn in state.turns:
            if turn.role == "tool":
                contents.append(self._function_responses(turn.tool_results or []))
            elif turn.role == "assistant":
                parts: List[Dict[str, Any]] = []
                if turn.content:
                    parts.append({"text": turn.content})
                for call in turn.tool_calls or []:
                    parts.append({"functionCall": {"name": call.name, "args": self._parse_arguments(call.arguments)}})
                contents.append({"role": "model", "parts": parts or [{"text": ""}]})
            elif turn.role == "user":
                contents.append({"role": "user", "parts": [{"text": turn.content}]})
        return contents

    @staticmethod
    def _function_responses(results: List[ToolResult]) -> Dict[str, Any]:
        parts = []
        for r in results:
            key = "result" if r.success else "error"
            parts.append({"functionResponse": {"name": r.name, "response": {key: r.output}}})
        return {"role": "user", "parts": parts}

    @staticmethod
    def _parse_arguments(raw: str) -> Dict[str, Any]:
        try:
            value = json.loads(raw or "{}")
        except json.JSONDecodeError:
            return {"_raw": raw}
        return value if isinstance(value, dict) else {"_raw": raw}

    def _parse_response(self, data: Dict[str, Any]) -> NormalizedResponse:
        candidate = (data.get("candidates") or [{}])[0]
        parts = (candidate.get("content") or {}).get("parts") or []
        texts: List[str] = []
        tool_calls: List[ToolCall] = []
        for part in parts:
            if "text" in part:
                texts.append(part.get("text") or "")
            call = part.get("functionCall")
            if call:
                name = call.get("name") or ""
                tool_calls.append(
                    ToolCall(
                        id=call.get("id") or f"{name}_{next(self._call_seq)}",
                        name=name,
                        arguments=json.dumps(call.get("args") or {}, ensure_ascii=False),
                    )
                )
        return NormalizedResponse(
            success=True,
            content="".join(texts),
            tool_calls=tool_calls,
            stop_reason=candidate.get("finishReason"),
            usage=parse_usage(data.get("usageMetadata"), "promptTokenCount", "candidatesTokenCount"),
            raw=data,
        )

"""工具数据结构定义。

这些 dataclass 描述了“工具调用”的 schema，既用于：
- 将可用工具目录暴露给 LLM（ToolDef / ToolParam），由各 backend 适配器翻译成原生格式。
- 在编排循环中保存和执行模型触发的工具调用（ToolCall / ToolResult）。
"""

import json
from dataclasses import dataclass, field
from typing import Dict, Any


@dataclass(frozen=True)
class ToolParam:
    """单个工具参数的定义。"""

    name: str
    description: str
    required: bool
    schema: Dict[str, Any] = field(default_factory=lambda: {"type": "string"})


@dataclass(frozen=True)
class ToolDef:
    """一个可供 LLM 调用的工具定义。"""

    name: str
    description: str
    params: Dict[str, ToolParam]

    def json_schema(self) -> Dict[str, Any]:
        """把参数表转成 JSON schema（object + properties + required）。"""

        properties: Dict[str, Any] = {}
        required = []
        for name, param in self.params.items():
            properties[name] = dict(param.schema or {"type": "string"})
            if param.description:
                properties[name]["description"] = param.description
            if param.required:
                required.append(name)
        return {"type": "object", "properties": properties, "required": required}


@dataclass
class ToolCall:
    """模型发起的一次工具调用请求。

    arguments 保留 backend 给出的原始 JSON 字符串，解析推迟到执行时，
    这样参数格式错误只影响这一次调用。
    """

    id: str
    name: str
    arguments: str = "{}"

    def parsed_arguments(self) -> Dict[str, Any]:
        if not self.arguments:
            return {}
        value = json.loads(self.arguments)
        if not isinstance(value, dict):
            raise ValueError("Tool arguments must be a JSON object")
        return value


@dataclass
class ToolResult:
    """工具执行结果（文本形式），call_id 对应 ToolCall.id。"""

    call_id: str
    success: bool
    output: str
    name: str = ""

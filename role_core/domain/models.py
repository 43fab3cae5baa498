"""统一的对话与结果数据模型。

本模块定义了编排引擎在不同 backend 之间共享的标准数据结构：

- ChatMessage: 一条对话消息（system/user/assistant/tool）。
- ConversationState: 一次编排运行内只追加的对话轮次序列，不做持久化。
- RequestOptions: 发给 backend 的采样参数。
- NormalizedResponse: backend 响应解析后的统一结果。

所有 Backend 适配器都只依赖这些模型，并负责在各自的 API JSON
和这些模型之间做转换。
"""

from dataclasses import dataclass, field
from typing import Literal, Optional, Any, Dict, List, TYPE_CHECKING

if TYPE_CHECKING:
    # 仅在类型检查时导入，避免运行时循环依赖
    from role_core.tools.definitions import ToolCall, ToolDef, ToolResult


Role = Literal["system", "user", "assistant", "tool"]


@dataclass
class ChatMessage:
    """一条对话消息。

    - role: 消息角色。
    - content: 纯文本内容。
    - tool_calls: role 为 "assistant" 且模型触发工具调用时，保存调用列表。
    - tool_results: role 为 "tool" 时，保存上一轮全部调用的执行结果
      （一轮多个调用的结果始终放在同一条消息里）。
    """

    role: Role
    content: str
    tool_calls: Optional[List["ToolCall"]] = None
    tool_results: Optional[List["ToolResult"]] = None


@dataclass
class RequestOptions:
    """一次请求的采样参数；None 表示使用 backend 配置中的默认值。"""

    model: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    tool_choice: Literal["auto", "none", "required"] = "auto"


@dataclass
class ConversationState:
    """一次编排运行内的对话状态。

    turns 只允许通过 append 追加；tools/options 在 send_turn 时记录，
    便于 send_tool_results 复用同一份工具目录与采样参数。
    """

    system: str = ""
    turns: List[ChatMessage] = field(default_factory=list)
    tools: List["ToolDef"] = field(default_factory=list)
    options: RequestOptions = field(default_factory=RequestOptions)

    def append(self, message: ChatMessage) -> None:
        self.turns.append(message)


@dataclass
class ChatUsage:
    """Backend 返回的 token 统计信息（统一格式）。"""

    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


@dataclass
class NormalizedResponse:
    """一次 backend 调用的统一结果。

    - success: 调用是否成功；失败时 error 为错误文本，content 为空。
    - tool_calls: 按模型输出顺序展平后的工具调用。
    - stop_reason: backend 给出的结束原因（finish_reason / stop_reason）。
    - raw: 原始响应 JSON，用于调试或日志记录。
    """

    success: bool
    content: str = ""
    tool_calls: List["ToolCall"] = field(default_factory=list)
    error: Optional[str] = None
    stop_reason: Optional[str] = None
    usage: Optional[ChatUsage] = None
    raw: Optional[Dict[str, Any]] = None

    @classmethod
    def failure(cls, error: str) -> "NormalizedResponse":
        return cls(success=False, error=error)

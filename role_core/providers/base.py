"""Backend 适配器接口。

编排循环不直接依赖任何厂商的 HTTP 协议，而是依赖这里的两个协议：

- GenericAdapter（orchestration = "generic"）：只负责单轮请求的翻译，
  多轮工具循环由 ToolLoopOrchestrator 驱动。
- SelfOrchestratingAdapter（orchestration = "self"）：自带工具循环实现，
  编排器检测到该标记后直接委托给 run_tool_loop，对外契约不变。

两者组成的 BackendAdapter 是显式的和类型，不依赖运行时探测可选方法。
适配器必须在边界处捕获 backend / 网络错误，以 NormalizedResponse(success=False)
返回，而不是抛出。
"""

from typing import Awaitable, Callable, List, Literal, Optional, Protocol, Union

from role_core.domain.models import ConversationState, NormalizedResponse, RequestOptions
from role_core.tools.definitions import ToolDef, ToolResult
from role_core.tools.executor import ToolExecutor


ProgressCallback = Callable[[int, NormalizedResponse], Optional[Awaitable[None]]]


class GenericAdapter(Protocol):
    """只翻译单轮请求的适配器。

    - send_turn: 发送 state 中的全部轮次及工具目录，返回模型本轮响应。
    - send_tool_results: 重放 state，并在同一个后续请求里附上上一轮
      全部工具调用的结果。
    """

    name: str
    orchestration: Literal["generic"]

    async def send_turn(
        self,
        state: ConversationState,
        tools: List[ToolDef],
        options: RequestOptions,
    ) -> NormalizedResponse:
        ...

    async def send_tool_results(
        self,
        state: ConversationState,
        tool_results: List[ToolResult],
    ) -> NormalizedResponse:
        ...


class SelfOrchestratingAdapter(GenericAdapter, Protocol):
    """自带工具循环的适配器。"""

    orchestration: Literal["self"]  # type: ignore[assignment]

    async def run_tool_loop(
        self,
        state: ConversationState,
        tools: List[ToolDef],
        executor: ToolExecutor,
        options: RequestOptions,
        *,
        max_iterations: int,
        on_progress: Optional[ProgressCallback] = None,
    ) -> NormalizedResponse:
        ...


BackendAdapter = Union[GenericAdapter, SelfOrchestratingAdapter]

"""LangGraph construction for the multi-turn tool loop.

Nodes map onto the loop states:

- ``await_model``    AwaitingModel: send the first turn or the previous tool results.
- ``execute_tools``  ExecutingTools: run every call of the last response, in order.
- ``failed``         Failed: raise MaxIterationsExceededError.
- ``END``            Done: the last response carried no tool calls.

Adapters flagged ``orchestration == "self"`` bypass the graph and run their own loop.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional
from uuid import uuid4

from langgraph.graph import END, StateGraph
from langgraph.graph.state import CompiledStateGraph

from role_core.config.settings import settings
from role_core.domain.exceptions import BackendUnavailableError, MaxIterationsExceededError
from role_core.domain.models import ChatMessage, ConversationState, NormalizedResponse, RequestOptions
from role_core.flows.progress import notify_progress
from role_core.flows.state import ToolLoopState
from role_core.infrastructure.logging.logger import log_event
from role_core.providers.base import BackendAdapter, ProgressCallback
from role_core.tools.definitions import ToolDef
from role_core.tools.executor import ToolExecutor


class ToolLoopOrchestrator:
    def __init__(
        self,
        adapter: BackendAdapter,
        executor: ToolExecutor,
        max_iterations: Optional[int] = None,
        on_progress: Optional[ProgressCallback] = None,
    ):
        self._adapter = adapter
        self._executor = executor
        self._max_iterations = settings.max_tool_iterations if max_iterations is None else max_iterations
        self._on_progress = on_progress
        self._graph: Optional[CompiledStateGraph] = None

    async def orchestrate(
        self,
        conversation: ConversationState,
        tools: List[ToolDef],
        options: Optional[RequestOptions] = None,
        log_ctx: Optional[Dict[str, Any]] = None,
    ) -> NormalizedResponse:
        """Drive ask → execute → resubmit until the model stops calling tools.

        Raises BackendUnavailableError when the very first turn fails and
        MaxIterationsExceededError when calls are still outstanding at the cap.
        """

        opts = options or RequestOptions()
        ctx = dict(log_ctx or {})
        ctx.setdefault("trace_id", f"tr-{uuid4().hex}")
        ctx.setdefault("provider", self._adapter.name)

        if self._adapter.orchestration == "self":
            log_event(logging.INFO, "Delegating to self-orchestrating adapter", ctx)
            return await self._adapter.run_tool_loop(
                conversation,
                tools,
                self._executor,
                opts,
                max_iterations=self._max_iterations,
                on_progress=self._on_progress,
            )

        if self._graph is None:
            self._graph = self._build_graph()
        initial: ToolLoopState = {
            "conversation": conversation,
            "tools": list(tools),
            "options": opts,
            "response": None,
            "pending_results": None,
            "iteration": 0,
            "max_iterations": self._max_iterations,
            "log_ctx": ctx,
        }
        final = await self._graph.ainvoke(
            initial,
            config={"recursion_limit": 2 * max(self._max_iterations, 1) + 2},
        )
        log_event(logging.INFO, "Tool loop finished", ctx, iterations=final["iteration"])
        return final["response"]

    def _build_graph(self) -> CompiledStateGraph:
        graph = StateGraph(ToolLoopState)
        graph.add_node("await_model", self._await_model)
        graph.add_node("execute_tools", self._execute_tools)
        graph.add_node("failed", self._failed)
        graph.set_entry_point("await_model")
        graph.add_conditional_edges(
            "await_model",
            self._route,
            {"done": END, "execute_tools": "execute_tools", "failed": "failed"},
        )
        graph.add_edge("execute_tools", "await_model")
        graph.add_edge("failed", END)
        return graph.compile()

    async def _await_model(self, state: ToolLoopState) -> Dict[str, Any]:
        conversation = state["conversation"]
        log_ctx = state["log_ctx"]
        if state["iteration"] == 0:
            response = await self._adapter.send_turn(conversation, state["tools"], state["options"])
        else:
            results = state["pending_results"] or []
            response = await self._adapter.send_tool_results(conversation, results)
            conversation.append(ChatMessage(role="tool", content="", tool_results=results))
        iteration = state["iteration"] + 1
        log_event(
            logging.INFO,
            "Model turn completed",
            log_ctx,
            iteration=iteration,
            success=response.success,
            tool_calls=len(response.tool_calls),
        )
        await notify_progress(self._on_progress, iteration, response, log_ctx)

        if not response.success:
            if iteration == 1:
                raise BackendUnavailableError(self._adapter.name, response.error or "unknown error")
            # 已有部分对话：以错误文本结束，不再继续工具循环
            response = NormalizedResponse(success=False, content=f"Error: {response.error}", error=response.error)
        return {"response": response, "iteration": iteration, "pending_results": None}

    async def _execute_tools(self, state: ToolLoopState) -> Dict[str, Any]:
        response = state["response"]
        state["conversation"].append(
            ChatMessage(role="assistant", content=response.content, tool_calls=response.tool_calls)
        )
        results = await self._executor.execute_calls(response.tool_calls, state["log_ctx"])
        return {"pending_results": results}

    @staticmethod
    def _route(state: ToolLoopState) -> str:
        response = state["response"]
        if response is None or not response.tool_calls:
            return "done"
        if state["iteration"] >= state["max_iterations"]:
            return "failed"
        return "execute_tools"

    @staticmethod
    def _failed(state: ToolLoopState) -> Dict[str, Any]:
        log_event(
            logging.ERROR,
            "Tool loop exceeded max iterations",
            state["log_ctx"],
            max_iterations=state["max_iterations"],
        )
        raise MaxIterationsExceededError(state["max_iterations"])

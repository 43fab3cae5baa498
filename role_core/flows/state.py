"""State definition for the LangGraph tool loop."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, TypedDict

from role_core.domain.models import ConversationState, NormalizedResponse, RequestOptions
from role_core.tools.definitions import ToolDef, ToolResult


class ToolLoopState(TypedDict, total=False):
    """State shared across tool loop nodes.

    ``iteration`` counts completed model calls and only ever increases.
    ``pending_results`` holds the results of the last executed turn until
    ``await_model`` submits them.
    """

    conversation: ConversationState
    tools: List[ToolDef]
    options: RequestOptions
    response: Optional[NormalizedResponse]
    pending_results: Optional[List[ToolResult]]
    iteration: int
    max_iterations: int
    log_ctx: Dict[str, Any]

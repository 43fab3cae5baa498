"""对外入口：处理一次角色请求。

流程：
1. 校验请求并解析角色。
2. 以 base_path 为根构造 sandbox，并把 sandbox 操作注册为工具。
3. 按角色解析 backend / 模型参数并创建适配器（可由调用方直接注入）。
4. 组装角色提示词，交给 ToolLoopOrchestrator 驱动工具循环。
5. 对最终文本执行内联 <file_operation> 命令。

所有协作对象都通过参数显式传入，不依赖全局单例。
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from role_core.config.role_models import get_role_model
from role_core.config.settings import Settings, settings as default_settings
from role_core.domain.exceptions import ValidationError
from role_core.domain.models import ChatMessage, ConversationState, RequestOptions
from role_core.flows.graph import ToolLoopOrchestrator
from role_core.infrastructure.logging.logger import log_event
from role_core.inline.processor import InlineCommandProcessor
from role_core.prompts.builder import RolePromptBuilder, parse_role
from role_core.providers import create_adapter
from role_core.providers.base import BackendAdapter, ProgressCallback
from role_core.sandbox import FileSystemSandbox, SandboxContext, register_sandbox_tools
from role_core.tools.executor import ToolExecutor
from role_core.tools.registry import ToolRegistry


class RoleRequest(BaseModel):
    """一次角色请求。

    除下列字段外的额外字段（如 coder 的 architecture、rewriter 的 tone）
    都视为角色专属参数，与 role_args 合并后交给 RolePromptBuilder 校验。
    """

    model_config = ConfigDict(extra="allow")

    role: str
    prompt: str
    base_path: str
    context: str = ""
    related_files: List[str] = Field(default_factory=list)
    allow_file_overwrite: bool = False
    language: Optional[str] = None
    role_args: Dict[str, Any] = Field(default_factory=dict)

    def merged_role_args(self) -> Dict[str, Any]:
        args: Dict[str, Any] = dict(self.model_extra or {})
        if self.language is not None:
            args["language"] = self.language
        args.update(self.role_args)
        return args


def _coerce_request(request: Union[RoleRequest, Dict[str, Any]]) -> RoleRequest:
    if isinstance(request, RoleRequest):
        return request
    try:
        return RoleRequest.model_validate(request)
    except PydanticValidationError as e:
        raise ValidationError(code="INVALID_REQUEST", message=str(e))


async def handle_role_request(
    request: Union[RoleRequest, Dict[str, Any]],
    *,
    settings: Optional[Settings] = None,
    adapter: Optional[BackendAdapter] = None,
    on_progress: Optional[ProgressCallback] = None,
) -> Dict[str, Any]:
    """处理角色请求，返回单个文本内容项 ``{"content": [{"type": "text", "text": ...}]}``。

    Raises:
        ValidationError: 请求或角色参数非法、backend 未配置 api key。
        BackendUnavailableError: 首轮 backend 调用失败。
        MaxIterationsExceededError: 达到最大轮数时模型仍在请求工具。
    """

    cfg = settings or default_settings
    req = _coerce_request(request)
    role = parse_role(req.role)
    log_ctx: Dict[str, Any] = {"trace_id": f"tr-{uuid4().hex}", "role": role.value}

    sandbox = FileSystemSandbox(
        SandboxContext(root=Path(req.base_path).expanduser().resolve(), allow_overwrite=req.allow_file_overwrite)
    )
    registry = register_sandbox_tools(ToolRegistry(), sandbox)
    executor = ToolExecutor(registry, timeout=cfg.tool_timeout)

    model_cfg = get_role_model(role.value, cfg)
    backend = adapter or create_adapter(
        model_cfg.provider,
        cfg,
        model=model_cfg.model,
        temperature=model_cfg.temperature,
        max_tokens=model_cfg.max_tokens,
    )
    log_ctx["provider"] = backend.name
    log_event(
        logging.INFO,
        "Handling role request",
        log_ctx,
        base_path=str(sandbox.root()),
        related_files=len(req.related_files),
        prompt_preview=req.prompt[:100],
    )

    tools = registry.list_all()
    prompt = await RolePromptBuilder(sandbox).build(
        role,
        req.prompt,
        context=req.context,
        related_files=req.related_files,
        role_args=req.merged_role_args(),
        tools=tools,
        log_ctx=log_ctx,
    )
    conversation = ConversationState(system=prompt.system)
    conversation.append(ChatMessage(role="user", content=prompt.user))
    options = RequestOptions(
        model=model_cfg.model,
        temperature=model_cfg.temperature,
        max_tokens=model_cfg.max_tokens,
    )

    orchestrator = ToolLoopOrchestrator(
        backend,
        executor,
        max_iterations=cfg.max_tool_iterations,
        on_progress=on_progress,
    )
    response = await orchestrator.orchestrate(conversation, tools, options, log_ctx)
    text = await InlineCommandProcessor(sandbox).process(response.content or "", log_ctx)
    log_event(logging.INFO, "Completed role request", log_ctx, turns=len(conversation.turns))
    return {"content": [{"type": "text", "text": text}]}

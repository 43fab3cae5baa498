"""Role Core 顶层包。

该包提供基于角色的 LLM 工具编排引擎，包括配置加载、领域模型、
多 backend 适配、工具循环编排、根目录受限的文件系统能力层，
以及模型输出中的内联文件操作命令处理。
"""

from role_core.api.service import RoleRequest, handle_role_request

__all__ = ["RoleRequest", "handle_role_request"]

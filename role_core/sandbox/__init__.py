"""根目录受限的文件系统能力层。

- filesystem: FileSystemSandbox 与 SandboxContext。
- tool_defs: 把 sandbox 操作注册到 ToolRegistry 的工具定义。
"""

from role_core.sandbox.filesystem import FileSystemSandbox, SandboxContext
from role_core.sandbox.tool_defs import register_sandbox_tools, sandbox_tool_defs

__all__ = ["FileSystemSandbox", "SandboxContext", "register_sandbox_tools", "sandbox_tool_defs"]

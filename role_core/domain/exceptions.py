"""统一业务异常模型。

所有跨模块抛出的业务级错误都继承自 BusinessError，便于入口层统一捕获。

ErrorKind 描述编排引擎自身的错误分类：

- 单次工具调用 / 单个内联命令块内的错误（UnknownTool、AccessDenied、
  FileConflict、MalformedInlineCommand、UnknownInlineCommand）会被就地转成文本，
  回灌给模型或替换进输出，不会沿调用栈向上抛。
- 中止整次编排的错误只有 MaxIterationsExceeded 与首轮 BackendUnavailable。
"""

from enum import Enum


class ErrorKind(str, Enum):
    UNKNOWN_TOOL = "UnknownTool"
    ACCESS_DENIED = "AccessDenied"
    FILE_CONFLICT = "FileConflict"
    MAX_ITERATIONS_EXCEEDED = "MaxIterationsExceeded"
    BACKEND_UNAVAILABLE = "BackendUnavailable"
    MALFORMED_INLINE_COMMAND = "MalformedInlineCommand"
    UNKNOWN_INLINE_COMMAND = "UnknownInlineCommand"


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "MISSING_API_KEY"）。
        message: 用户可读错误信息。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 trace_id、provider 等）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class NetworkError(BusinessError):
    """网络层错误，例如连接失败、超时等。"""


class ApiError(BusinessError):
    """第三方 API 返回非 2xx/429 错误时抛出。"""


class RateLimitError(BusinessError):
    """Backend 限流错误。"""


class ValidationError(BusinessError):
    """参数或配置校验失败。"""


class EngineError(BusinessError):
    """带 ErrorKind 的编排引擎错误。"""

    kind: ErrorKind

    def __init__(self, message: str, http_status: int = 400, **extra):
        super().__init__(self.kind.value, message, http_status=http_status, **extra)


class UnknownToolError(EngineError):
    kind = ErrorKind.UNKNOWN_TOOL

    def __init__(self, name: str):
        super().__init__(f"Tool not found: {name}", http_status=404, tool_name=name)


class AccessDeniedError(EngineError):
    kind = ErrorKind.ACCESS_DENIED

    def __init__(self, path: str):
        super().__init__(
            f"Access denied: Path '{path}' is outside of the sandbox root.",
            http_status=403,
            path=path,
        )


class FileConflictError(EngineError):
    """目标文件已存在且未允许覆盖。

    write_file 本身以 ``fileExists: True`` 结果表达冲突，不抛出；此异常供
    需要“冲突即失败”语义的调用方使用（如内联 move_file）。
    """

    kind = ErrorKind.FILE_CONFLICT

    def __init__(self, path: str):
        super().__init__(f"File already exists: {path}", http_status=409, path=path)


class MaxIterationsExceededError(EngineError):
    kind = ErrorKind.MAX_ITERATIONS_EXCEEDED

    def __init__(self, max_iterations: int):
        super().__init__(
            f"Reached maximum iterations ({max_iterations}) in tool calling loop",
            http_status=500,
            max_iterations=max_iterations,
        )


class BackendUnavailableError(EngineError):
    kind = ErrorKind.BACKEND_UNAVAILABLE

    def __init__(self, provider: str, message: str):
        super().__init__(f"{provider}: {message}", http_status=502, provider=provider)


class MalformedInlineCommandError(EngineError):
    kind = ErrorKind.MALFORMED_INLINE_COMMAND


class UnknownInlineCommandError(EngineError):
    kind = ErrorKind.UNKNOWN_INLINE_COMMAND

    def __init__(self, command: str):
        super().__init__(f"Unknown command: {command}", command=command)

"""每轮进度回调的隔离调用。

回调可以是普通函数或协程函数；它抛出的任何异常都只记录日志，
不影响工具循环的控制流。
"""

import inspect
import logging
from typing import Any, Dict, Optional

from role_core.domain.models import NormalizedResponse
from role_core.infrastructure.logging.logger import log_event


async def notify_progress(
    callback: Optional[Any],
    iteration: int,
    response: NormalizedResponse,
    log_ctx: Dict[str, Any],
) -> None:
    if callback is None:
        return
    try:
        result = callback(iteration, response)
        if inspect.isawaitable(result):
            await result
    except Exception as e:
        log_event(
            logging.WARNING,
            "Progress callback failed",
            log_ctx,
            iteration=iteration,
            error=str(e),
        )

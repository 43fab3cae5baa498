"""各适配器共用的 HTTP 发送原语。

只做一件事：POST JSON 并返回响应 JSON，同时把传输层错误映射为业务异常：

- httpx.RequestError（DNS 失败、连接超时等） → NetworkError
- 429 → RateLimitError
- 其他 >= 400 → ApiError
"""

from typing import Any, Dict, Optional

import httpx

from role_core.domain.exceptions import ApiError, BusinessError, NetworkError, RateLimitError
from role_core.domain.models import ChatUsage, NormalizedResponse
from role_core.infrastructure.logging.logger import logger


async def post_json(
    url: str,
    payload: Dict[str, Any],
    *,
    headers: Dict[str, str],
    timeout: float,
    provider: str,
    params: Optional[Dict[str, str]] = None,
) -> Dict[str, Any]:
    try:
        async with httpx.AsyncClient(timeout=timeout, trust_env=False) as client:
            resp = await client.post(url, json=payload, headers=headers, params=params)
    except httpx.RequestError as e:
        raise NetworkError(code="NETWORK_ERROR", message=str(e) or type(e).__name__, provider=provider)
    if resp.status_code == 429:
        raise RateLimitError(code="RATE_LIMIT", message=f"{provider} rate limit", provider=provider)
    if resp.status_code >= 400:
        raise ApiError(code="API_ERROR", message=resp.text, http_status=resp.status_code, provider=provider)
    return resp.json()


# 响应结构不符合预期时 json / dict 访问可能抛出的错误
RESPONSE_ERRORS = (ValueError, KeyError, TypeError, IndexError)


def failure_response(provider: str, exc: Exception) -> NormalizedResponse:
    """把适配器边界上捕获的异常转成失败的 NormalizedResponse。"""

    if isinstance(exc, BusinessError):
        message = f"{exc.code}: {exc.message}"
    else:
        message = f"Invalid response: {exc}"
    logger.warning(
        "Backend call failed",
        extra={"extra": {"provider": provider, "error": message[:500]}},
    )
    return NormalizedResponse.failure(message)


def parse_usage(raw: Optional[Dict[str, Any]], prompt_key: str, completion_key: str) -> Optional[ChatUsage]:
    if not raw:
        return None
    prompt = int(raw.get(prompt_key) or 0)
    completion = int(raw.get(completion_key) or 0)
    return ChatUsage(prompt_tokens=prompt, completion_tokens=completion, total_tokens=prompt + completion)

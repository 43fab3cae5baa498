"""LLM Backend 集成层。

该包下的模块负责：
- 定义适配器协议 (base)：GenericAdapter | SelfOrchestratingAdapter。
- 维护 backend 与模型配置 (registry)。
- 提供各厂商的具体实现 (openai_client、anthropic_client、google_client)。

create_adapter 通过 ADAPTER_FACTORIES 按 backend id 在运行时选择实现，
新增 backend 时只需注册一个工厂函数。
"""

from typing import Callable, Dict, Optional

from role_core.providers.anthropic_client import AnthropicClient
from role_core.providers.base import BackendAdapter, GenericAdapter, SelfOrchestratingAdapter
from role_core.providers.google_client import GoogleClient
from role_core.providers.openai_client import OpenAIClient
from role_core.providers.registry import BackendCredentials, resolve_credentials


AdapterFactory = Callable[[BackendCredentials], BackendAdapter]

ADAPTER_FACTORIES: Dict[str, AdapterFactory] = {
    "openai": OpenAIClient,
    "grok": OpenAIClient,
    "anthropic": AnthropicClient,
    "google": GoogleClient,
}


def register_adapter(name: str, factory: AdapterFactory) -> None:
    ADAPTER_FACTORIES[name.lower()] = factory


def create_adapter(
    name: Optional[str],
    settings,
    model: Optional[str] = None,
    temperature: Optional[float] = None,
    max_tokens: Optional[int] = None,
) -> BackendAdapter:
    """根据 backend id 创建适配器；未配置 api key 时立即抛 ValidationError。"""

    provider_name = (name or settings.default_provider).lower()
    factory = ADAPTER_FACTORIES.get(provider_name)
    if factory is None:
        raise KeyError(f"Unknown provider: {provider_name!r}")
    credentials = resolve_credentials(
        provider_name,
        settings,
        model=model,
        temperature=temperature,
        max_tokens=max_tokens,
    )
    return factory(credentials)


__all__ = [
    "ADAPTER_FACTORIES",
    "BackendAdapter",
    "GenericAdapter",
    "SelfOrchestratingAdapter",
    "create_adapter",
    "register_adapter",
]

"""Backend 与模型配置。

本模块把 “backend id” 解耦为两层：

- ProviderConfig / ModelConfig：静态元数据（默认 base_url、默认模型、token 上限）。
- BackendCredentials：结合 Settings 解析出的运行时参数（api_key、base_url、
  model、temperature、max_tokens、timeout），每个适配器实例持有一份。

适配器实现通过 ADAPTER_FACTORIES 在运行时按 backend id 选择（见 providers/__init__.py）。
"""

from dataclasses import dataclass
from typing import Dict, Mapping, Optional

from role_core.domain.exceptions import ValidationError


@dataclass
class ModelConfig:
    """单个逻辑模型的配置。"""

    logical_name: str
    provider_model: str
    max_tokens: int
    default_temperature: float


@dataclass
class ProviderConfig:
    """某个 backend 的整体配置。"""

    name: str
    base_url: str
    models: Dict[str, ModelConfig]
    default_model: str = "default"


@dataclass(frozen=True)
class BackendCredentials:
    """单个适配器实例使用的已解析参数。"""

    provider: str
    api_key: str
    base_url: str
    model: str
    temperature: float
    max_tokens: int
    timeout: float


OPENAI_CONFIG = ProviderConfig(
    name="openai",
    base_url="https://api.openai.com/v1",
    models={
        "default": ModelConfig(
            logical_name="default",
            provider_model="gpt-4o",
            max_tokens=4096,
            default_temperature=0.2,
        )
    },
)

ANTHROPIC_CONFIG = ProviderConfig(
    name="anthropic",
    base_url="https://api.anthropic.com/v1",
    models={
        "default": ModelConfig(
            logical_name="default",
            provider_model="claude-3-5-sonnet-20241022",
            max_tokens=4000,
            default_temperature=0.2,
        )
    },
)

GOOGLE_CONFIG = ProviderConfig(
    name="google",
    base_url="https://generativelanguage.googleapis.com/v1beta",
    models={
        "default": ModelConfig(
            logical_name="default",
            provider_model="gemini-1.5-flash-latest",
            max_tokens=8192,
            default_temperature=0.2,
        )
    },
)

# xAI Grok 使用 OpenAI 兼容协议，仅 base_url 与模型不同
GROK_CONFIG = ProviderConfig(
    name="grok",
    base_url="https://api.x.ai/v1",
    models={
        "default": ModelConfig(
            logical_name="default",
            provider_model="grok-2-latest",
            max_tokens=4096,
            default_temperature=0.2,
        )
    },
)


PROVIDER_REGISTRY: Mapping[str, ProviderConfig] = {
    "openai": OPENAI_CONFIG,
    "anthropic": ANTHROPIC_CONFIG,
    "google": GOOGLE_CONFIG,
    "grok": GROK_CONFIG,
}


def get_provider_config(name: str) -> ProviderConfig:
    """根据名称获取 ProviderConfig，名称不区分大小写。"""

    key = name.lower()
    for k, cfg in PROVIDER_REGISTRY.items():
        if k.lower() == key:
            return cfg
    raise KeyError(f"Unknown provider: {name!r}")


def resolve_credentials(
    name: str,
    settings,
    model: Optional[str] = None,
    temperature: Optional[float] = None,
    max_tokens: Optional[int] = None,
) -> BackendCredentials:
    """结合 Settings 解析某个 backend 的运行参数。

    找不到 api key 时直接抛 ValidationError(MISSING_API_KEY)，
    让适配器构造阶段就失败，而不是等到第一次请求。
    """

    cfg = get_provider_config(name)
    api_key = getattr(settings, f"{cfg.name}_api_key", None)
    if not api_key:
        raise ValidationError(
            code="MISSING_API_KEY",
            message=f"{cfg.name.upper()}_API_KEY not set",
            provider=cfg.name,
        )
    model_cfg = cfg.models[cfg.default_model]
    if model and model in cfg.models:
        model_cfg = cfg.models[model]
        model = model_cfg.provider_model
    return BackendCredentials(
        provider=cfg.name,
        api_key=api_key,
        base_url=(getattr(settings, f"{cfg.name}_base_url", None) or cfg.base_url).rstrip("/"),
        model=model or model_cfg.provider_model,
        temperature=model_cfg.default_temperature if temperature is None else temperature,
        max_tokens=max_tokens or model_cfg.max_tokens,
        timeout=settings.http_timeout,
    )

"""角色 → backend / 模型 / 采样参数映射。

解析顺序（后者覆盖前者）：

1. 默认值：settings.default_provider、backend 默认模型、
   settings.default_temperature、settings.default_max_tokens。
2. ROLE_MODEL_OVERRIDES 中的内置角色调优。
3. settings.role_models[role]（来自环境变量或 config.yaml）。
"""

from dataclasses import dataclass, replace
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class RoleModelConfig:
    provider: str
    model: Optional[str]
    temperature: float
    max_tokens: int


ROLE_MODEL_OVERRIDES: Dict[str, Dict[str, Any]] = {
    "coder": {"temperature": 0.1},
    "rewriter": {"temperature": 0.7, "max_tokens": 8000},
    "ui_ux": {"temperature": 0.4},
    "analyst": {"temperature": 0.3, "max_tokens": 6000},
}

_FIELDS = ("provider", "model", "temperature", "max_tokens")


def get_role_model(role: str, settings) -> RoleModelConfig:
    cfg = RoleModelConfig(
        provider=settings.default_provider,
        model=None,
        temperature=settings.default_temperature,
        max_tokens=settings.default_max_tokens,
    )
    for source in (ROLE_MODEL_OVERRIDES.get(role), (settings.role_models or {}).get(role)):
        if source:
            cfg = replace(cfg, **{k: v for k, v in source.items() if k in _FIELDS})
    return cfg

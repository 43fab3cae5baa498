"""配置管理模块。

支持从 .env、config.yaml 以及环境变量加载配置。优先级（高 → 低）：

1. 构造参数（测试中常用 ``Settings(openai_api_key=...)``）。
2. 环境变量。
3. .env 文件。
4. config.yaml（可通过 ROLE_CORE_CONFIG_FILE 指定路径）。
"""

import os
import warnings
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _load_config_from_yaml() -> Dict[str, Any]:
    """从 config.yaml 加载配置（若存在）。"""
    candidates = []
    explicit = os.getenv("ROLE_CORE_CONFIG_FILE")
    if explicit:
        candidates.append(Path(explicit).expanduser())
    candidates.extend([
        Path.cwd() / "config.yaml",
        Path(__file__).resolve().parents[2] / "config.yaml",
    ])

    seen: set[Path] = set()
    for path in candidates:
        if not path or path in seen:
            continue
        seen.add(path)
        try:
            if path.exists():
                data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
                if isinstance(data, dict):
                    return data
                warnings.warn(f"Config file {path} is not a mapping, ignored")
        except (OSError, yaml.YAMLError) as exc:
            warnings.warn(f"Failed to read config file {path}: {exc}")
    return {}


class Settings(BaseSettings):
    """运行时配置（使用 Pydantic Settings）。"""

    # ---- Backend 选择 ----
    default_provider: str = Field(
        default="anthropic",
        description="角色未单独配置时使用的 backend，例如 openai、anthropic、google、grok",
    )

    # OpenAI
    openai_api_key: Optional[str] = Field(default=None, description="OpenAI API 密钥")
    openai_base_url: str = Field(default="https://api.openai.com/v1", description="OpenAI API 基础URL")
    # Anthropic
    anthropic_api_key: Optional[str] = Field(default=None, description="Anthropic API 密钥")
    anthropic_base_url: str = Field(default="https://api.anthropic.com/v1", description="Anthropic API 基础URL")
    # Google Gemini
    google_api_key: Optional[str] = Field(default=None, description="Google Gemini API 密钥")
    google_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        description="Gemini API 基础URL",
    )
    # xAI Grok（OpenAI 兼容协议）
    grok_api_key: Optional[str] = Field(default=None, description="Grok API 密钥")
    grok_base_url: str = Field(default="https://api.x.ai/v1", description="Grok API 基础URL")

    http_timeout: float = Field(default=60.0, ge=1.0, description="单次 backend 调用超时时间（秒）")
    tool_timeout: float = Field(default=30.0, gt=0, description="单次工具执行超时时间（秒）")
    max_tool_iterations: int = Field(
        default=10,
        ge=1,
        le=50,
        description="单次编排中模型调用的最大轮数",
    )
    default_temperature: float = Field(default=0.2, ge=0.0, le=2.0, description="默认生成温度")
    default_max_tokens: int = Field(default=10000, ge=1, description="默认最大输出 token 数")

    log_dir: str = Field(default="logs", description="日志目录")
    log_redact_content: bool = Field(default=False, description="是否脱敏日志内容")

    role_models: Dict[str, Dict[str, Any]] = Field(
        default_factory=dict,
        description="按角色覆盖 backend/model/temperature/max_tokens，例如 {'coder': {'provider': 'openai'}}",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @staticmethod
    def _config_source() -> Dict[str, Any]:
        return _load_config_from_yaml()

    @field_validator("openai_api_key", "anthropic_api_key", "google_api_key", "grok_api_key")
    @classmethod
    def validate_api_key(cls, v: Optional[str]) -> Optional[str]:
        if v and len(v) < 10:
            raise ValueError("API key seems too short")
        return v

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            cls._config_source,
            file_secret_settings,
        )


settings = Settings()

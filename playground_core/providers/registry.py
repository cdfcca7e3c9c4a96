"""Provider 配置。

每个 Provider 属于一个协议家族（family）：

- "openai"：chat completions 协议（OpenAI 官方、OpenRouter 等兼容服务）。
- "gemini"：generateContent 协议。

适配器按 family 选择，同一家族的不同服务只在 base_url / model 上有区别。
"""

from dataclasses import dataclass, replace
from typing import Literal, Mapping, Optional


ProviderFamily = Literal["openai", "gemini"]


@dataclass
class ProviderConfig:
    """某个 Provider 的配置，由工厂从全局 settings 构造后注入适配器。"""

    name: str
    family: ProviderFamily
    base_url: str
    model: str
    api_key: Optional[str] = None
    temperature: float = 0.7
    max_tokens: int = 2048

    def with_overrides(self, **changes) -> "ProviderConfig":
        changes = {k: v for k, v in changes.items() if v is not None}
        return replace(self, **changes)


OPENAI_CONFIG = ProviderConfig(
    name="openai",
    family="openai",
    base_url="https://api.openai.com/v1",
    model="gpt-4o",
)

GEMINI_CONFIG = ProviderConfig(
    name="gemini",
    family="gemini",
    base_url="https://generativelanguage.googleapis.com/v1beta",
    model="gemini-2.5-flash-lite-preview-06-17",
)

# OpenRouter 走 OpenAI 兼容协议
OPENROUTER_CONFIG = ProviderConfig(
    name="openrouter",
    family="openai",
    base_url="https://openrouter.ai/api/v1",
    model="openai/gpt-4o",
)


PROVIDER_REGISTRY: Mapping[str, ProviderConfig] = {
    "openai": OPENAI_CONFIG,
    "gemini": GEMINI_CONFIG,
    "openrouter": OPENROUTER_CONFIG,
}


def get_provider_config(name: str) -> ProviderConfig:
    """根据名称获取 ProviderConfig，名称不区分大小写。"""

    key = name.lower()
    for k, cfg in PROVIDER_REGISTRY.items():
        if k.lower() == key:
            return cfg
    raise KeyError(f"Unknown provider: {name!r}")

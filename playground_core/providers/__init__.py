"""LLM Provider 集成层。

该包下的模块负责：
- 定义适配器抽象 (base) 与函数调用 id 关联 (correlator)。
- 维护 Provider 配置 (registry)。
- 提供各协议家族的适配器 (openai_adapter、gemini_adapter)。
- 基于 httpx 的传输实现 (transport)。
"""

from typing import Dict, List, Optional, Type

from playground_core.config.settings import settings
from playground_core.providers.base import ProviderAdapter
from playground_core.providers.gemini_adapter import GeminiAdapter
from playground_core.providers.openai_adapter import OpenAIAdapter
from playground_core.providers.registry import ProviderConfig, get_provider_config
from playground_core.providers.transport import Transport

ADAPTERS: Dict[str, Type[ProviderAdapter]] = {
    "openai": OpenAIAdapter,
    "gemini": GeminiAdapter,
}


def provider_config_from_settings(name: str) -> ProviderConfig:
    """用全局 settings 覆盖注册表中的默认值。"""

    base = get_provider_config(name)
    prefix = base.name
    return base.with_overrides(
        api_key=getattr(settings, f"{prefix}_api_key", None),
        base_url=getattr(settings, f"{prefix}_base_url", None),
        model=getattr(settings, f"{prefix}_model", None),
        temperature=settings.temperature,
        max_tokens=settings.max_tokens,
    )


def create_adapter(name: Optional[str] = None, config: Optional[ProviderConfig] = None) -> ProviderAdapter:
    """根据名称创建适配器实例，默认取配置中的 provider。"""

    if config is None:
        config = provider_config_from_settings(name or settings.default_provider)
    return ADAPTERS[config.family](config)


async def list_models(adapter: ProviderAdapter, transport: Transport) -> List[str]:
    """查询 Provider 当前可用的模型列表。"""

    request = adapter.models_request()
    payload = await transport.get_json(request.url, request.headers)
    return adapter.parse_models(payload)

"""Provider 适配器抽象。

编排器不直接依赖任何厂商的 JSON 结构，而是依赖 ProviderAdapter：

- render(conversation, tools): 把整个 UnifiedConversation 渲染为一次厂商请求。
- parse(payload, taken_ids): 把厂商响应 JSON 解析回统一结构。

system prompt 的放置位置和函数调用 id 策略都归适配器所有，
每个会话只选择一次适配器，之后不再按厂商分支。
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

from playground_core.domain.exceptions import MalformedResponseError
from playground_core.domain.models import ChatUsage, FunctionCall, UnifiedConversation
from playground_core.providers.correlator import FunctionCallCorrelator, IdPolicy
from playground_core.providers.registry import ProviderConfig
from playground_core.tools.definitions import FunctionTool


@dataclass
class VendorRequest:
    """一次待发送的厂商 HTTP 请求。"""

    url: str
    headers: Dict[str, str]
    body: Dict[str, Any]


@dataclass
class ParsedResponse:
    """厂商响应解析后的统一结果。

    content 为 None 表示纯函数调用响应，不是错误。
    """

    content: Optional[str]
    function_calls: List[FunctionCall] = field(default_factory=list)
    finish_reason: Optional[str] = None
    usage: Optional[ChatUsage] = None
    raw: Dict[str, Any] = field(default_factory=dict)


class ProviderAdapter(ABC):
    """厂商协议适配器基类。

    子类需要声明 family 和 id_policy，并实现渲染/解析逻辑。
    """

    family: str = ""
    id_policy: IdPolicy = IdPolicy.VENDOR

    def __init__(self, config: ProviderConfig):
        self.config = config
        self.correlator = FunctionCallCorrelator(self.id_policy)

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def model(self) -> str:
        return self.config.model

    @abstractmethod
    def render(self, conversation: UnifiedConversation, tools: Optional[List[FunctionTool]] = None) -> VendorRequest:
        ...

    @abstractmethod
    def parse(self, payload: Dict[str, Any], taken_ids: Optional[Set[str]] = None) -> ParsedResponse:
        ...

    @abstractmethod
    def render_tools(self, tools: List[FunctionTool]) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    def models_request(self) -> VendorRequest:
        """列出可用模型的请求（GET，body 为空）。"""

        ...

    @abstractmethod
    def parse_models(self, payload: Dict[str, Any]) -> List[str]:
        ...

    def _malformed(self, message: str, **extra: Any) -> MalformedResponseError:
        return MalformedResponseError(code="MALFORMED_RESPONSE", message=message, provider=self.name, **extra)

    @staticmethod
    def _parse_usage(usage_raw: Dict[str, Any]) -> Optional[ChatUsage]:
        if not usage_raw:
            return None
        return ChatUsage(
            prompt_tokens=usage_raw.get("prompt_tokens", 0),
            completion_tokens=usage_raw.get("completion_tokens", 0),
            total_tokens=usage_raw.get("total_tokens", 0),
        )

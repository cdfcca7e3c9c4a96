"""函数调用 id 关联器。

所有“调用 id 从哪里来”的逻辑都集中在这里：

- IdPolicy.VENDOR：厂商返回了 id（OpenAI 的 tool_calls[i].id），原样保留，
  绝不重新生成或重新编号，否则厂商侧无法把 tool 消息和调用对上。
  厂商偶尔漏掉 id 时才本地补一个。
- IdPolicy.SYNTHESIZE：厂商根本不返回 id（Gemini），检测到调用时本地生成。

生成的 id 在整个会话内唯一，同一轮里多次调用同名函数（例如两个城市的
get_weather）也会拿到不同的 id。
"""

from enum import Enum
from typing import Any, Iterable, List, Optional, Set, Tuple
from uuid import uuid4

from playground_core.domain.exceptions import MalformedResponseError, UnsupportedShapeError
from playground_core.domain.models import FunctionCall, UnifiedConversation


class IdPolicy(str, Enum):
    VENDOR = "vendor"
    SYNTHESIZE = "synthesize"


# (vendor_id, name, arguments)，由适配器从厂商 JSON 中提取
RawCall = Tuple[Optional[str], str, Any]


class FunctionCallCorrelator:
    """按适配器指定的策略为一轮中的函数调用分配 id。"""

    def __init__(self, policy: IdPolicy):
        self.policy = policy

    def assign(self, raw_calls: Iterable[RawCall], taken_ids: Optional[Set[str]] = None) -> List[FunctionCall]:
        """把厂商原始调用转换为带 id 的 FunctionCall 列表。

        taken_ids 是会话中已经出现过的调用 id，生成的新 id 会避开它们。
        """

        taken: Set[str] = set(taken_ids or ())
        turn_ids: Set[str] = set()
        calls: List[FunctionCall] = []
        for vendor_id, name, arguments in raw_calls:
            if self.policy is IdPolicy.VENDOR and vendor_id:
                if vendor_id in turn_ids:
                    raise MalformedResponseError(
                        code="DUPLICATE_CALL_ID",
                        message=f"duplicate function call id in one turn: {vendor_id}",
                        call_id=vendor_id,
                    )
                call_id = vendor_id
            else:
                call_id = self.synthesize_id(name, taken | turn_ids)
            turn_ids.add(call_id)
            calls.append(FunctionCall(id=call_id, name=name, arguments=arguments))
        return calls

    @staticmethod
    def synthesize_id(name: str, taken: Set[str]) -> str:
        prefix = f"call_{name or 'fn'}_"
        while True:
            candidate = prefix + uuid4().hex[:12]
            if candidate not in taken:
                return candidate


def check_responses(conversation: UnifiedConversation) -> None:
    """校验每条函数响应都对应一条更早出现的函数调用。

    违反约束说明调用方构造的会话有缺陷，渲染时直接报错，不静默丢弃。
    """

    seen: Set[str] = set()
    for message in conversation.messages:
        for response in message.function_responses:
            if response.call_id not in seen:
                raise UnsupportedShapeError(
                    code="ORPHAN_FUNCTION_RESPONSE",
                    message=f"function response references unknown call id: {response.call_id}",
                    call_id=response.call_id,
                    message_id=message.id,
                )
        for call in message.function_calls:
            seen.add(call.id)

"""统一的会话数据模型。

本模块定义了与厂商无关的标准数据结构：

- FunctionCall: 模型发起的一次函数调用（id/name/arguments）。
- FunctionResponse: 某次函数调用的执行结果，call_id 始终等于对应调用的 id。
- UnifiedMessage: 一条消息（或一轮中的片段），可同时携带调用与响应。
- UnifiedConversation: system prompt + 有序消息列表，插入顺序即发送顺序。

所有 Provider 适配器都只依赖这些模型，并负责在各自的 API JSON
和这些模型之间做转换。会话只会增长，不会删除消息。
"""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional, Set
from uuid import uuid4


# 统一消息角色。tool-result 对应 OpenAI 的 tool 消息、Gemini 的 functionResponse。
Role = Literal["system", "user", "assistant", "tool-result"]


def new_message_id() -> str:
    return f"m-{uuid4().hex}"


@dataclass
class FunctionCall:
    """模型发起的一次函数调用请求。

    arguments 是结构化值（通常为 dict），不做 JSON Schema 校验，
    校验由工具执行方负责。
    """

    id: str
    name: str
    arguments: Any = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "arguments": self.arguments}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FunctionCall":
        return cls(id=data["id"], name=data["name"], arguments=data.get("arguments", {}))


@dataclass
class FunctionResponse:
    """函数调用的执行结果。"""

    call_id: str
    name: str
    result: Any = None

    def to_dict(self) -> Dict[str, Any]:
        return {"call_id": self.call_id, "name": self.name, "result": self.result}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FunctionResponse":
        return cls(call_id=data["call_id"], name=data["name"], result=data.get("result"))


@dataclass
class ChatUsage:
    """Provider 返回的 token 统计信息（统一格式）。"""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


@dataclass
class UnifiedMessage:
    """一条统一消息。

    - content: 纯文本内容；纯函数调用消息时为 None。
    - function_calls: 当 role 为 "assistant" 时，模型发起的调用列表。
    - function_responses: 当 role 为 "tool-result" 时，本批次的执行结果。
    - timestamp: 单调递增的逻辑时间，仅用于排序与展示。
    """

    role: Role
    content: Optional[str] = None
    function_calls: List[FunctionCall] = field(default_factory=list)
    function_responses: List[FunctionResponse] = field(default_factory=list)
    id: str = field(default_factory=new_message_id)
    timestamp: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "role": self.role,
            "content": self.content,
            "function_calls": [c.to_dict() for c in self.function_calls],
            "function_responses": [r.to_dict() for r in self.function_responses],
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UnifiedMessage":
        return cls(
            id=data["id"],
            role=data["role"],
            content=data.get("content"),
            function_calls=[FunctionCall.from_dict(c) for c in data.get("function_calls") or []],
            function_responses=[
                FunctionResponse.from_dict(r) for r in data.get("function_responses") or []
            ],
            timestamp=float(data.get("timestamp") or 0.0),
        )


@dataclass
class UnifiedConversation:
    """与厂商无关的完整会话。

    system_prompt 在编排器中只有一个值，具体放在哪里（首条 system 消息
    还是独立的 systemInstruction 字段）由各适配器决定。
    """

    system_prompt: Optional[str] = None
    messages: List[UnifiedMessage] = field(default_factory=list)

    # ---- 追加 ----------------------------------------------------

    def append(self, message: UnifiedMessage) -> UnifiedMessage:
        message.timestamp = self._next_timestamp()
        self.messages.append(message)
        return message

    def add_user_message(self, content: str) -> UnifiedMessage:
        return self.append(UnifiedMessage(role="user", content=content))

    def add_assistant_message(
        self,
        content: Optional[str],
        function_calls: Optional[List[FunctionCall]] = None,
    ) -> UnifiedMessage:
        return self.append(
            UnifiedMessage(role="assistant", content=content, function_calls=list(function_calls or []))
        )

    def add_function_responses(self, responses: List[FunctionResponse]) -> UnifiedMessage:
        return self.append(UnifiedMessage(role="tool-result", function_responses=list(responses)))

    def _next_timestamp(self) -> float:
        now = time.time()
        if self.messages:
            now = max(now, self.messages[-1].timestamp + 1e-6)
        return now

    # ---- 查询 ----------------------------------------------------

    def effective_system_prompt(self) -> Optional[str]:
        """显式 system_prompt 优先，否则取第一条 system 消息的内容。"""

        if self.system_prompt and self.system_prompt.strip():
            return self.system_prompt
        for message in self.messages:
            if message.role == "system" and message.content:
                return message.content
        return None

    def known_call_ids(self) -> Set[str]:
        return {call.id for message in self.messages for call in message.function_calls}

    def last_assistant_message(self) -> Optional[UnifiedMessage]:
        for message in reversed(self.messages):
            if message.role == "assistant":
                return message
        return None

    def pending_function_calls(self) -> List[FunctionCall]:
        """最后一条 assistant 消息中尚未得到响应的调用（按原顺序）。"""

        last_idx = None
        for idx in range(len(self.messages) - 1, -1, -1):
            if self.messages[idx].role == "assistant":
                last_idx = idx
                break
        if last_idx is None:
            return []
        answered = {
            response.call_id
            for message in self.messages[last_idx + 1 :]
            for response in message.function_responses
        }
        return [call for call in self.messages[last_idx].function_calls if call.id not in answered]

    # ---- 序列化 --------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "system_prompt": self.system_prompt,
            "messages": [m.to_dict() for m in self.messages],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UnifiedConversation":
        return cls(
            system_prompt=data.get("system_prompt"),
            messages=[UnifiedMessage.from_dict(m) for m in data.get("messages") or []],
        )

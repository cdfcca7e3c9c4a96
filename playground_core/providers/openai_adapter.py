"""OpenAI 风格（chat completions）适配器。

本模块负责：

1. 将 UnifiedConversation 渲染为 /chat/completions 请求体。
2. 将响应 JSON 解析为统一的 ParsedResponse（含函数调用）。

协议要点：
- system prompt 作为第一条 role=system 消息。
- 一轮中的多个调用放在同一条 assistant 消息的 tool_calls 数组里。
- 每个函数响应单独渲染为一条 role=tool 消息（不合并）。
- 厂商返回的调用 id 原样保留，用于 tool_call_id 回传。
"""

import json
from typing import Any, Dict, List, Optional, Set

from playground_core.domain.exceptions import ValidationError
from playground_core.domain.models import UnifiedConversation, UnifiedMessage
from playground_core.providers.base import ParsedResponse, ProviderAdapter, VendorRequest
from playground_core.providers.correlator import IdPolicy, RawCall, check_responses
from playground_core.tools.definitions import FunctionTool, enabled_tools


class OpenAIAdapter(ProviderAdapter):
    """OpenAI 及兼容服务（OpenRouter 等）的适配器实现。"""

    family = "openai"
    id_policy = IdPolicy.VENDOR

    def render(self, conversation: UnifiedConversation, tools: Optional[List[FunctionTool]] = None) -> VendorRequest:
        check_responses(conversation)
        return VendorRequest(
            url=f"{self.config.base_url}/chat/completions",
            headers=self._headers(),
            body=self._build_payload(conversation, enabled_tools(tools)),
        )

    def _headers(self) -> Dict[str, str]:
        if not self.config.api_key:
            # 配置缺失走 ValidationError，方便上层统一处理
            raise ValidationError(code="MISSING_API_KEY", message=f"{self.name} api key not set")
        return {
            "Authorization": f"Bearer {self.config.api_key}",
            "Content-Type": "application/json",
        }

    def _build_payload(self, conversation: UnifiedConversation, tools: List[FunctionTool]) -> Dict[str, Any]:
        messages: List[Dict[str, Any]] = []
        system_prompt = conversation.effective_system_prompt()
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        for message in conversation.messages:
            messages.extend(self._message_to_payload(message))

        payload: Dict[str, Any] = {
            "model": self.config.model,
            "messages": messages,
            "temperature": self.config.temperature,
            "max_tokens": self.config.max_tokens,
        }
        if tools:
            payload["tools"] = self.render_tools(tools)
            payload["tool_choice"] = "auto"
        return payload

    def _message_to_payload(self, message: UnifiedMessage) -> List[Dict[str, Any]]:
        """单条统一消息可能对应零条、一条或多条厂商消息。"""

        if message.role == "system":
            # system prompt 已经在开头统一输出
            return []
        if message.role == "user":
            return [{"role": "user", "content": message.content or ""}]
        if message.role == "assistant":
            payload: Dict[str, Any] = {"role": "assistant"}
            if message.content is not None or not message.function_calls:
                payload["content"] = message.content or ""
            if message.function_calls:
                payload["tool_calls"] = [
                    {
                        "id": call.id,
                        "type": "function",
                        "function": {
                            "name": call.name,
                            "arguments": json.dumps(call.arguments, ensure_ascii=False),
                        },
                    }
                    for call in message.function_calls
                ]
            return [payload]
        return [
            {
                "role": "tool",
                "content": self._result_to_text(response.result),
                "name": response.name,
                "tool_call_id": response.call_id,
            }
            for response in message.function_responses
        ]

    @staticmethod
    def _result_to_text(result: Any) -> str:
        if isinstance(result, str):
            return result
        return json.dumps(result, ensure_ascii=False)

    def render_tools(self, tools: List[FunctionTool]) -> List[Dict[str, Any]]:
        return [
            {
                "type": "function",
                "function": {
                    "name": tool.name,
                    "description": tool.description,
                    "parameters": tool.parameters,
                },
            }
            for tool in tools
        ]

    def parse(self, payload: Dict[str, Any], taken_ids: Optional[Set[str]] = None) -> ParsedResponse:
        """将 chat completions 响应解析为 ParsedResponse。

        只有 tool_calls、没有 content 的响应是合法的，此时 content 为 None。
        """

        choices = payload.get("choices") if isinstance(payload, dict) else None
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
            raise self._malformed("response has no choices")
        choice = choices[0]
        message = choice.get("message")
        if not isinstance(message, dict):
            raise self._malformed("choice has no message")

        calls = self.correlator.assign(self._extract_calls(message), taken_ids)
        content = self._extract_content(message.get("content"))
        # 空白文本视为没有内容
        if content is not None and not content.strip():
            content = None
        if content is None and not calls:
            raise self._malformed("response has neither content nor tool calls")
        usage_raw = payload.get("usage")
        return ParsedResponse(
            content=content,
            function_calls=calls,
            finish_reason=choice.get("finish_reason"),
            usage=self._parse_usage(usage_raw if isinstance(usage_raw, dict) else {}),
            raw=payload,
        )

    def _extract_calls(self, message: Dict[str, Any]) -> List[RawCall]:
        tool_calls = message.get("tool_calls") or []
        if not isinstance(tool_calls, list):
            raise self._malformed("tool_calls is not a list")
        raw_calls: List[RawCall] = []
        for call in tool_calls:
            if not isinstance(call, dict):
                raise self._malformed("tool call entry is not an object")
            func = call.get("function") or {}
            if not isinstance(func, dict):
                raise self._malformed("tool call function is not an object")
            name = func.get("name") or call.get("name") or ""
            raw_calls.append((call.get("id"), name, self._parse_arguments(func.get("arguments"))))

        # 部分兼容服务仍会返回旧版 function_call 字段
        function_call = message.get("function_call")
        if function_call and not isinstance(function_call, dict):
            raise self._malformed("function_call is not an object")
        if function_call:
            raw_calls.append(
                (
                    function_call.get("id"),
                    function_call.get("name") or "",
                    self._parse_arguments(function_call.get("arguments")),
                )
            )
        return raw_calls

    @staticmethod
    def _extract_content(raw: Any) -> Optional[str]:
        if raw is None or isinstance(raw, str):
            return raw
        if isinstance(raw, list):
            # 兼容服务可能返回 [{"type": "text", "text": ...}] 形式
            return "".join(part.get("text") or "" for part in raw if isinstance(part, dict))
        return str(raw)

    @staticmethod
    def _parse_arguments(raw: Any) -> Dict[str, Any]:
        """解析函数调用的 arguments 字段。

        OpenAI 会把 arguments 作为 JSON 字符串返回，这里做一层
        json.loads 尝试，失败时保留原始字符串到 `_raw`，避免信息丢失。
        """

        if isinstance(raw, dict):
            return raw
        if isinstance(raw, str):
            if not raw.strip():
                return {}
            try:
                return json.loads(raw)
            except json.JSONDecodeError:
                return {"_raw": raw}
        return {}

    def models_request(self) -> VendorRequest:
        return VendorRequest(url=f"{self.config.base_url}/models", headers=self._headers(), body={})

    def parse_models(self, payload: Dict[str, Any]) -> List[str]:
        return [item["id"] for item in payload.get("data") or [] if item.get("id")]

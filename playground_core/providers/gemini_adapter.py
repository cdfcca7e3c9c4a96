"""Gemini 风格（generateContent）适配器。

协议要点：
- system prompt 放在顶层 systemInstruction 字段，不进入 contents。
- 一轮中的多个调用是同一个 role=model 条目里的多个 functionCall part。
- 同一批函数响应合并为一个 role=user 条目里的多个 functionResponse part。
- Gemini 不返回调用 id，检测到调用时由关联器本地生成，
  下一次请求渲染 functionResponse 时原样带回。
"""

from typing import Any, Dict, List, Optional, Set

from playground_core.domain.exceptions import ValidationError
from playground_core.domain.models import UnifiedConversation, UnifiedMessage
from playground_core.providers.base import ParsedResponse, ProviderAdapter, VendorRequest
from playground_core.providers.correlator import IdPolicy, RawCall, check_responses
from playground_core.tools.definitions import FunctionTool, enabled_tools

TOP_P = 0.95
TOP_K = 40


class GeminiAdapter(ProviderAdapter):
    family = "gemini"
    id_policy = IdPolicy.SYNTHESIZE

    def render(self, conversation: UnifiedConversation, tools: Optional[List[FunctionTool]] = None) -> VendorRequest:
        check_responses(conversation)
        return VendorRequest(
            url=f"{self.config.base_url}/models/{self.config.model}:generateContent",
            headers=self._headers(),
            body=self._build_payload(conversation, enabled_tools(tools)),
        )

    def _headers(self) -> Dict[str, str]:
        if not self.config.api_key:
            raise ValidationError(code="MISSING_API_KEY", message=f"{self.name} api key not set")
        return {
            "Content-Type": "application/json",
            "x-goog-api-key": self.config.api_key,
        }

    def _build_payload(self, conversation: UnifiedConversation, tools: List[FunctionTool]) -> Dict[str, Any]:
        contents: List[Dict[str, Any]] = []
        previous_was_result = False
        for message in conversation.messages:
            entry = self._message_to_content(message)
            if entry is None:
                continue
            is_result = message.role == "tool-result"
            if is_result and previous_was_result:
                # 连续的 tool-result 消息属于同一批，合并为一个 user 条目
                contents[-1]["parts"].extend(entry["parts"])
            else:
                contents.append(entry)
            previous_was_result = is_result

        payload: Dict[str, Any] = {
            "contents": contents,
            "generationConfig": {
                "temperature": self.config.temperature,
                "topP": TOP_P,
                "topK": TOP_K,
                "maxOutputTokens": self.config.max_tokens,
            },
        }
        system_prompt = conversation.effective_system_prompt()
        if system_prompt:
            payload["systemInstruction"] = {"parts": [{"text": system_prompt}]}
        if tools:
            payload["tools"] = self.render_tools(tools)
        return payload

    def _message_to_content(self, message: UnifiedMessage) -> Optional[Dict[str, Any]]:
        if message.role == "system":
            return None
        if message.role == "user":
            # Gemini 拒绝空白文本 part
            if not (message.content or "").strip():
                return None
            return {"role": "user", "parts": [{"text": message.content}]}
        if message.role == "assistant":
            parts: List[Dict[str, Any]] = []
            if message.content:
                parts.append({"text": message.content})
            for call in message.function_calls:
                args = call.arguments if isinstance(call.arguments, dict) else {}
                parts.append({"functionCall": {"id": call.id, "name": call.name, "args": args}})
            if not parts:
                return None
            return {"role": "model", "parts": parts}
        parts = [
            {
                "functionResponse": {
                    "id": response.call_id,
                    "name": response.name,
                    "response": self._wrap_result(response.result),
                }
            }
            for response in message.function_responses
        ]
        if not parts:
            return None
        return {"role": "user", "parts": parts}

    @staticmethod
    def _wrap_result(result: Any) -> Dict[str, Any]:
        # functionResponse.response 必须是 JSON object
        if isinstance(result, dict):
            return result
        return {"result": result}

    def render_tools(self, tools: List[FunctionTool]) -> List[Dict[str, Any]]:
        return [
            {
                "functionDeclarations": [
                    {
                        "name": tool.name,
                        "description": tool.description,
                        "parameters": tool.parameters,
                    }
                    for tool in tools
                ]
            }
        ]

    def parse(self, payload: Dict[str, Any], taken_ids: Optional[Set[str]] = None) -> ParsedResponse:
        if not isinstance(payload, dict):
            raise self._malformed("response is not a JSON object")
        candidates = payload.get("candidates")
        if not isinstance(candidates, list) or not candidates:
            feedback = payload.get("promptFeedback")
            reason = feedback.get("blockReason") if isinstance(feedback, dict) else None
            raise self._malformed(f"response blocked: {reason}" if reason else "response has no candidates")

        candidate = candidates[0]
        if not isinstance(candidate, dict):
            raise self._malformed("candidate is not an object")
        content_entry = candidate.get("content") or {}
        parts = content_entry.get("parts") if isinstance(content_entry, dict) else None
        if not isinstance(parts or [], list):
            raise self._malformed("candidate parts is not a list")
        texts: List[str] = []
        raw_calls: List[RawCall] = []
        for part in parts or []:
            if not isinstance(part, dict):
                raise self._malformed("content part is not an object")
            if "functionCall" in part:
                fc = part["functionCall"] or {}
                if not isinstance(fc, dict):
                    raise self._malformed("functionCall is not an object")
                args = fc.get("args") or {}
                raw_calls.append((fc.get("id"), fc.get("name") or "", args if isinstance(args, dict) else {}))
            elif "text" in part and not part.get("thought"):
                texts.append(str(part["text"] or ""))

        calls = self.correlator.assign(raw_calls, taken_ids)
        content = "".join(texts)
        # 空白文本视为没有内容，否则渲染时该 model 轮会被丢弃
        if not content.strip():
            content = None
        if content is None and not calls:
            raise self._malformed(
                "candidate has neither text nor function calls",
                finish_reason=candidate.get("finishReason"),
            )
        usage_meta = payload.get("usageMetadata")
        return ParsedResponse(
            content=content,
            function_calls=calls,
            finish_reason=candidate.get("finishReason"),
            usage=self._parse_usage_metadata(usage_meta if isinstance(usage_meta, dict) else {}),
            raw=payload,
        )

    def _parse_usage_metadata(self, meta: Dict[str, Any]):
        return self._parse_usage(
            {
                "prompt_tokens": meta.get("promptTokenCount", 0),
                "completion_tokens": meta.get("candidatesTokenCount", 0),
                "total_tokens": meta.get("totalTokenCount", 0),
            }
            if meta
            else {}
        )

    def models_request(self) -> VendorRequest:
        return VendorRequest(url=f"{self.config.base_url}/models", headers=self._headers(), body={})

    def parse_models(self, payload: Dict[str, Any]) -> List[str]:
        names = []
        for item in payload.get("models") or []:
            name = item.get("name") or ""
            if "gemini" in name and "embedding" not in name:
                names.append(name.replace("models/", "", 1))
        return names

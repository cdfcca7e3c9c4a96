"""函数工具执行器。

编排器只依赖 ToolExecutor 协议：execute(name, arguments) -> result，
实现可以是同步函数也可以是协程。FunctionToolExecutor 是默认实现：

- 内置 fetch 工具通过 httpx 发起真实 HTTP 请求。
- 通过 handlers 注册的工具调用对应的 Python 函数。
- 其他工具返回其 mock_response（能解析成 JSON 就返回 JSON）。
- 未知或被禁用的工具抛出 ExecutionError，由编排器转成错误响应回传给模型。
"""

import inspect
import json
from typing import Any, Callable, Dict, List, Optional, Protocol

import httpx

from playground_core.domain.exceptions import ExecutionError
from playground_core.tools.definitions import FunctionTool, default_function_tools

ToolFunc = Callable[[Dict[str, Any]], Any]
FETCH_METHODS = ("GET", "POST", "PUT", "DELETE")


class ToolExecutor(Protocol):
    def execute(self, name: str, arguments: Dict[str, Any]) -> Any:
        ...


class FunctionToolExecutor:
    def __init__(
        self,
        tools: Optional[List[FunctionTool]] = None,
        handlers: Optional[Dict[str, ToolFunc]] = None,
        timeout: float = 30.0,
    ):
        self._tools: Dict[str, FunctionTool] = {
            tool.name: tool for tool in (tools if tools is not None else default_function_tools())
        }
        self._handlers = dict(handlers or {})
        self._timeout = timeout

    @property
    def tools(self) -> List[FunctionTool]:
        return list(self._tools.values())

    async def execute(self, name: str, arguments: Dict[str, Any]) -> Any:
        tool = self._tools.get(name)
        if tool is None:
            raise ExecutionError(code="UNKNOWN_TOOL", message=f"Unknown function tool: {name}", tool=name)
        if not tool.enabled:
            raise ExecutionError(code="TOOL_DISABLED", message=f"Function tool is disabled: {name}", tool=name)

        handler = self._handlers.get(name)
        if handler is not None:
            result = handler(arguments or {})
            if inspect.isawaitable(result):
                result = await result
            return result
        if tool.is_builtin and name == "fetch":
            return await self._fetch(arguments or {})
        return self._mock_result(tool)

    @staticmethod
    def _mock_result(tool: FunctionTool) -> Any:
        raw = tool.mock_response
        if raw is None:
            return {"result": None}
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            return {"result": raw}

    async def _fetch(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        url = arguments.get("url")
        if not url or not isinstance(url, str):
            raise ExecutionError(code="INVALID_ARGUMENTS", message="fetch requires a url", tool="fetch")
        method = str(arguments.get("method") or "GET").upper()
        if method not in FETCH_METHODS:
            raise ExecutionError(code="INVALID_ARGUMENTS", message=f"unsupported method: {method}", tool="fetch")
        headers = arguments.get("headers") or {}
        body = arguments.get("body") if method in ("POST", "PUT") else None
        if body is not None and not isinstance(body, str):
            body = json.dumps(body, ensure_ascii=False)

        try:
            async with httpx.AsyncClient(timeout=self._timeout, trust_env=False) as client:
                resp = await client.request(method, url, headers=headers, content=body)
        except httpx.RequestError as e:
            raise ExecutionError(code="FETCH_FAILED", message=f"Request failed: {e}", tool="fetch")
        return {
            "status": resp.status_code,
            "status_text": resp.reason_phrase,
            "headers": dict(resp.headers),
            "body": resp.text,
        }

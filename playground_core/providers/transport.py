"""HTTP 传输层。

适配器只负责构造 VendorRequest，真正的网络调用由 transport 完成。
这里把 HTTP 状态码与网络异常统一映射为业务异常，RetryPolicy 再根据
异常的 retryable 标记决定是否重试。
"""

from typing import Any, Dict, Optional, Protocol

import httpx

from playground_core.domain.exceptions import (
    ApiError,
    AuthError,
    MalformedResponseError,
    RateLimitError,
    ServerError,
    TransportError,
)


class Transport(Protocol):
    """编排器依赖的传输能力。"""

    async def send_json(self, url: str, headers: Dict[str, str], body: Dict[str, Any]) -> Dict[str, Any]:
        ...

    async def get_json(self, url: str, headers: Dict[str, str]) -> Dict[str, Any]:
        ...


class HttpxTransport:
    """基于 httpx.AsyncClient 的传输实现，每次请求单独建立 client。"""

    def __init__(self, timeout: float = 30.0, trust_env: bool = False):
        self._timeout = timeout
        self._trust_env = trust_env

    async def send_json(self, url: str, headers: Dict[str, str], body: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", url, headers, body)

    async def get_json(self, url: str, headers: Dict[str, str]) -> Dict[str, Any]:
        return await self._request("GET", url, headers, None)

    async def _request(
        self,
        method: str,
        url: str,
        headers: Dict[str, str],
        body: Optional[Dict[str, Any]],
    ) -> Dict[str, Any]:
        try:
            async with httpx.AsyncClient(timeout=self._timeout, trust_env=self._trust_env) as client:
                resp = await client.request(method, url, json=body, headers=headers)
        except httpx.TimeoutException as e:
            raise TransportError(code="TIMEOUT", message=str(e) or "request timed out")
        except httpx.RequestError as e:
            # 网络错误：DNS 失败、连接被拒绝等
            raise TransportError(code="NETWORK_ERROR", message=str(e))
        raise_for_status(resp)
        try:
            return resp.json()
        except ValueError:
            raise MalformedResponseError(
                code="MALFORMED_RESPONSE",
                message="response body is not valid JSON",
                http_status=resp.status_code,
            )


def raise_for_status(resp: httpx.Response) -> None:
    """把错误状态码映射为业务异常。"""

    status = resp.status_code
    if status < 400:
        return
    text = resp.text
    if status == 429:
        # 限流错误交给 RetryPolicy 做退避
        raise RateLimitError(code="RATE_LIMIT", message=text or "rate limited", http_status=status)
    if status in (401, 403) or (status == 400 and "API_KEY_INVALID" in text):
        raise AuthError(code="AUTH_ERROR", message=text or "authentication failed", http_status=status)
    if status >= 500:
        raise ServerError(code="SERVER_ERROR", message=text, http_status=status)
    raise ApiError(code="API_ERROR", message=text, http_status=status)

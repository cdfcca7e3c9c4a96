"""Provider 调用的重试与退避策略。

只包裹一次 LLM 往返，不包裹工具执行，避免重复执行有副作用的工具。
错误是否可重试由异常自身的 retryable 标记决定：限流、网络错误与 5xx
属于瞬时错误；鉴权失败、响应格式错误等立即抛出。
"""

import asyncio
import inspect
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Literal, Optional

from playground_core.domain.exceptions import BusinessError, ValidationError

RetryStrategy = Literal["exponential", "fixed"]

# on_retry(attempt, delay, error)，可以是普通函数或协程函数
RetryCallback = Callable[[int, float, BusinessError], Any]


@dataclass
class RetryPolicy:
    """有界重试策略。

    Attributes:
        max_retries: 首次调用之外最多重试的次数。
        base_delay: 基础等待时间（秒）。
        strategy: "exponential" 时第 n 次重试等待 base_delay * 2 ** min(n, max_exponent)，
            "fixed" 时等待 base_delay * n。
        max_exponent: 指数上限，防止等待时间无限增长。
    """

    max_retries: int = 3
    base_delay: float = 2.0
    strategy: RetryStrategy = "exponential"
    max_exponent: int = 5

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValidationError(code="INVALID_RETRY_POLICY", message="max_retries must be >= 0")
        if self.base_delay < 0:
            raise ValidationError(code="INVALID_RETRY_POLICY", message="base_delay must be >= 0")
        if self.strategy not in ("exponential", "fixed"):
            raise ValidationError(code="INVALID_RETRY_POLICY", message=f"unknown strategy: {self.strategy}")

    def delay_for(self, attempt: int) -> float:
        """第 attempt 次重试（从 1 开始）前的等待秒数。"""

        if self.strategy == "fixed":
            return self.base_delay * attempt
        return self.base_delay * (2 ** min(attempt, self.max_exponent))

    @staticmethod
    def is_retryable(error: BaseException) -> bool:
        return isinstance(error, BusinessError) and error.retryable

    async def run(
        self,
        operation: Callable[[], Awaitable[Any]],
        on_retry: Optional[RetryCallback] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> Any:
        """执行 operation，遇到瞬时错误时按策略退避重试。

        重试耗尽后抛出最后一次的异常。
        """

        attempt = 0
        while True:
            try:
                return await operation()
            except BusinessError as exc:
                if not self.is_retryable(exc) or attempt >= self.max_retries:
                    raise
                attempt += 1
                delay = self.delay_for(attempt)
                if on_retry is not None:
                    outcome = on_retry(attempt, delay, exc)
                    if inspect.isawaitable(outcome):
                        await outcome
                await sleep(delay)

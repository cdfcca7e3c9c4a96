"""会话编排器。

驱动 “请求 -> 响应 -> 执行函数调用 -> 再请求” 的循环：

    Idle -> AwaitingProviderResponse -> (ProcessingFunctionCalls)* -> Idle

任何进行中的状态都可能进入 Failed。循环本身由 LangGraph 描述
（见 flows/graph.py），这里负责每个节点的具体工作：渲染请求、
带重试地调用 transport、解析响应、执行工具、追加消息、持久化与发事件。

一个编排器实例只驱动一个会话，同一时刻最多一次 Provider 往返在进行。
"""

import asyncio
import inspect
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Literal, Optional
from uuid import uuid4

from playground_core.agents.retry import RetryPolicy
from playground_core.domain.conversation import SessionStore
from playground_core.domain.exceptions import (
    BusinessError,
    ConversationCancelled,
    LoopLimitExceeded,
    ValidationError,
)
from playground_core.domain.models import FunctionCall, FunctionResponse, UnifiedConversation, UnifiedMessage
from playground_core.flows.graph import build_conversation_graph, recursion_limit_for
from playground_core.flows.state import ConversationState
from playground_core.infrastructure.logging.logger import logger
from playground_core.providers.base import ParsedResponse, ProviderAdapter, VendorRequest
from playground_core.providers.transport import Transport
from playground_core.tools.definitions import FunctionTool
from playground_core.tools.executor import ToolExecutor


class OrchestratorState(str, Enum):
    IDLE = "idle"
    AWAITING_PROVIDER_RESPONSE = "awaiting_provider_response"
    PROCESSING_FUNCTION_CALLS = "processing_function_calls"
    FAILED = "failed"


IN_FLIGHT = (OrchestratorState.AWAITING_PROVIDER_RESPONSE, OrchestratorState.PROCESSING_FUNCTION_CALLS)

EventKind = Literal[
    "state_changed",
    "message_appended",
    "provider_request",
    "provider_response",
    "retry_scheduled",
    "function_call_started",
    "function_call_completed",
    "function_call_failed",
    "failed",
]


@dataclass
class OrchestratorEvent:
    """编排器产生的生命周期事件，供外部 UI 渲染。

    kind:
        - "state_changed": 状态机迁移，payload["previous"] 为旧状态。
        - "message_appended": 会话追加了一条消息，message 为该消息。
        - "provider_request" / "provider_response": 一次 LLM 往返的开始与结束。
        - "retry_scheduled": 瞬时错误后即将退避重试。
        - "function_call_*": 单个函数调用的执行过程。
        - "failed": 进入 Failed，payload 中带错误码与错误信息。
    """

    kind: EventKind
    state: OrchestratorState
    message: Optional[UnifiedMessage] = None
    payload: Dict[str, Any] = field(default_factory=dict)


Listener = Callable[[OrchestratorEvent], Any]


@dataclass
class OrchestratorConfig:
    max_rounds: int = 8  # 单次提交内最多的 Provider 往返次数
    parallel_tool_calls: bool = True  # 同一批函数调用是否并发执行
    system_prompt: Optional[str] = None

    def __post_init__(self) -> None:
        if self.max_rounds < 1:
            raise ValidationError(code="INVALID_CONFIG", message="max_rounds must be >= 1")


class ConversationOrchestrator:
    def __init__(
        self,
        adapter: ProviderAdapter,
        transport: Transport,
        tool_executor: Optional[ToolExecutor] = None,
        *,
        conversation: Optional[UnifiedConversation] = None,
        session_store: Optional[SessionStore] = None,
        tools: Optional[List[FunctionTool]] = None,
        config: Optional[OrchestratorConfig] = None,
        retry_policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self._adapter = adapter
        self._transport = transport
        self._tool_executor = tool_executor
        self._session_store = session_store
        self._config = config or OrchestratorConfig()
        self._retry_policy = retry_policy or RetryPolicy()
        self._sleep = sleep
        if tools is None:
            tools = getattr(tool_executor, "tools", None) or []
        self._tools = list(tools) if tool_executor is not None else []

        if conversation is None and session_store is not None:
            conversation = session_store.load()
        self._conversation = conversation or UnifiedConversation()
        if self._config.system_prompt and not self._conversation.system_prompt:
            self._conversation.system_prompt = self._config.system_prompt

        self._state = OrchestratorState.IDLE
        self._last_error: Optional[BusinessError] = None
        self._listeners: List[Listener] = []
        self._cancel_requested = False
        self._cancel_event: Optional[asyncio.Event] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._log_ctx: Dict[str, Any] = {}
        self._graph = build_conversation_graph(self._provider_node, self._tools_node)

    # ---- 对外 API ------------------------------------------------

    @property
    def state(self) -> OrchestratorState:
        return self._state

    @property
    def conversation(self) -> UnifiedConversation:
        return self._conversation

    @property
    def last_error(self) -> Optional[BusinessError]:
        return self._last_error

    @property
    def adapter(self) -> ProviderAdapter:
        return self._adapter

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """注册事件监听器，返回取消订阅函数。"""

        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def submit(self, text: str) -> Optional[UnifiedMessage]:
        """提交一条用户消息并驱动循环直到会话静止。

        Returns:
            最终的 assistant 消息（不含函数调用）。
        """

        self._ensure_ready()
        if not text or not text.strip():
            raise ValidationError(code="EMPTY_MESSAGE", message="message must not be empty")
        if self._conversation.pending_function_calls():
            raise ValidationError(
                code="PENDING_FUNCTION_CALLS",
                message="conversation has unanswered function calls, call resume() first",
            )
        return await self._run({"rounds": 0, "pending_calls": False}, user_text=text)

    def send(self, text: str) -> Optional[UnifiedMessage]:
        """submit 的同步版本，供没有事件循环的调用方使用。"""

        return asyncio.run(self.submit(text))

    async def resume(self) -> Optional[UnifiedMessage]:
        """从最后一个一致状态继续（取消或失败之后）。

        - 最后一条 assistant 消息有未响应的函数调用：先执行它们。
        - 最后一条是 user 或 tool-result 消息：重新请求 Provider。
        - 否则会话已经静止，直接返回最后一条 assistant 消息。
        """

        self._ensure_ready()
        pending = bool(self._conversation.pending_function_calls())
        last = self._conversation.messages[-1] if self._conversation.messages else None
        if not pending and (last is None or last.role == "assistant"):
            self._set_state(OrchestratorState.IDLE)
            return self._conversation.last_assistant_message()
        return await self._run({"rounds": 0, "pending_calls": pending})

    def cancel(self) -> bool:
        """请求取消进行中的会话。

        不再发起新的重试与函数调用；已追加的消息保留，之后可以 resume()。
        """

        if self._state not in IN_FLIGHT:
            return False
        self._cancel_requested = True
        if self._loop is not None and self._cancel_event is not None:
            try:
                running = asyncio.get_running_loop()
            except RuntimeError:
                running = None
            if running is self._loop:
                self._cancel_event.set()
            else:
                self._loop.call_soon_threadsafe(self._cancel_event.set)
        return True

    # ---- 循环 ----------------------------------------------------

    def _ensure_ready(self) -> None:
        if self._state in IN_FLIGHT:
            raise ValidationError(code="CONVERSATION_BUSY", message="a request is already in flight")

    def _begin_run(self) -> None:
        self._cancel_requested = False
        self._cancel_event = asyncio.Event()
        self._loop = asyncio.get_running_loop()
        self._last_error = None
        self._log_ctx = {
            "trace_id": f"tr-{uuid4().hex}",
            "provider": self._adapter.name,
            "model": self._adapter.model,
        }
        # 先进入进行中状态，之后的并发 submit 会得到 CONVERSATION_BUSY
        self._state = OrchestratorState.AWAITING_PROVIDER_RESPONSE

    async def _run(self, initial: ConversationState, user_text: Optional[str] = None) -> Optional[UnifiedMessage]:
        previous = self._state
        self._begin_run()
        start_time = time.time()
        try:
            self._emit("state_changed", payload={"previous": previous.value, "current": self._state.value})
            if user_text is not None:
                self._record(self._conversation.add_user_message(user_text))
            else:
                self._log(
                    logging.INFO,
                    "Resuming conversation",
                    self._log_ctx,
                    pending_calls=initial.get("pending_calls", False),
                )
            await self._graph.ainvoke(
                initial,
                config={"recursion_limit": recursion_limit_for(self._config.max_rounds)},
            )
        except BusinessError as exc:
            self._fail(exc)
            raise
        except Exception as exc:
            self._fail(BusinessError(code="INTERNAL_ERROR", message=str(exc)))
            raise
        finally:
            self._cancel_event = None
            self._loop = None

        self._set_state(OrchestratorState.IDLE)
        final = self._conversation.last_assistant_message()
        self._log(
            logging.INFO,
            "Completed conversation turn",
            self._log_ctx,
            elapsed_seconds=round(time.time() - start_time, 2),
            assistant_message_id=final.id if final else None,
        )
        return final

    def _fail(self, exc: BusinessError) -> None:
        self._last_error = exc
        self._set_state(OrchestratorState.FAILED)
        level = logging.INFO if isinstance(exc, ConversationCancelled) else logging.ERROR
        self._log(level, "Conversation failed", self._log_ctx, code=exc.code, error=exc.message)
        self._emit("failed", payload={"code": exc.code, "message": exc.message, "error": exc})

    async def _provider_node(self, state: ConversationState) -> Dict[str, Any]:
        """一次 LLM 往返：渲染 -> 带重试发送 -> 解析 -> 追加 assistant 消息。"""

        self._set_state(OrchestratorState.AWAITING_PROVIDER_RESPONSE)
        self._raise_if_cancelled()
        rounds = state.get("rounds", 0) + 1
        request = self._adapter.render(self._conversation, self._tools)
        self._log(
            logging.INFO,
            "Calling provider",
            self._log_ctx,
            round=rounds,
            message_count=len(self._conversation.messages),
        )
        self._emit("provider_request", payload={"round": rounds, "url": request.url})

        payload = await self._retry_policy.run(
            lambda: self._round_trip(request),
            on_retry=self._on_retry,
            sleep=self._cancellable_sleep,
        )
        parsed: ParsedResponse = self._adapter.parse(payload, self._conversation.known_call_ids())
        if parsed.usage:
            self._log(
                logging.INFO,
                "Token usage",
                self._log_ctx,
                prompt_tokens=parsed.usage.prompt_tokens,
                completion_tokens=parsed.usage.completion_tokens,
                total_tokens=parsed.usage.total_tokens,
            )
        self._emit(
            "provider_response",
            payload={
                "round": rounds,
                "finish_reason": parsed.finish_reason,
                "function_calls": len(parsed.function_calls),
                "usage": parsed.usage,
            },
        )

        message = self._conversation.add_assistant_message(parsed.content, parsed.function_calls)
        self._record(message)
        if parsed.function_calls and rounds >= self._config.max_rounds:
            raise LoopLimitExceeded(
                code="LOOP_LIMIT_EXCEEDED",
                message=f"provider still requested function calls after {rounds} rounds",
                max_rounds=self._config.max_rounds,
            )
        return {"rounds": rounds, "pending_calls": bool(parsed.function_calls)}

    async def _round_trip(self, request: VendorRequest) -> Dict[str, Any]:
        self._raise_if_cancelled()
        return await self._until_cancelled(
            self._transport.send_json(request.url, request.headers, request.body)
        )

    def _on_retry(self, attempt: int, delay: float, error: BusinessError) -> None:
        self._log(
            logging.WARNING,
            "Provider call failed, retrying",
            self._log_ctx,
            attempt=attempt,
            delay=delay,
            code=error.code,
        )
        self._emit(
            "retry_scheduled",
            payload={"attempt": attempt, "delay": delay, "code": error.code, "message": error.message},
        )

    async def _cancellable_sleep(self, delay: float) -> None:
        self._raise_if_cancelled()
        await self._until_cancelled(self._sleep(delay))
        self._raise_if_cancelled()

    async def _tools_node(self, state: ConversationState) -> Dict[str, Any]:
        """执行最后一条 assistant 消息中尚未响应的全部函数调用。"""

        self._set_state(OrchestratorState.PROCESSING_FUNCTION_CALLS)
        self._raise_if_cancelled()
        calls = self._conversation.pending_function_calls()
        self._log(logging.INFO, "Executing function calls", self._log_ctx, count=len(calls))

        if self._config.parallel_tool_calls:
            responses = list(await asyncio.gather(*(self._execute_call(call) for call in calls)))
        else:
            responses = []
            for call in calls:
                if self._cancel_requested:
                    break
                responses.append(await self._execute_call(call))

        # 响应按调用顺序追加，与执行完成顺序无关
        if responses:
            self._record(self._conversation.add_function_responses(responses))
        self._raise_if_cancelled()
        return {"pending_calls": False}

    async def _execute_call(self, call: FunctionCall) -> FunctionResponse:
        self._emit("function_call_started", payload={"call_id": call.id, "name": call.name, "arguments": call.arguments})
        try:
            if self._tool_executor is None:
                raise BusinessError(code="NO_TOOL_EXECUTOR", message="no tool executor configured")
            result = self._tool_executor.execute(call.name, call.arguments)
            if inspect.isawaitable(result):
                result = await result
        except Exception as exc:  # noqa: BLE001 - 工具错误作为函数响应回传给模型
            message = exc.message if isinstance(exc, BusinessError) else str(exc)
            self._log(
                logging.WARNING,
                "Function call failed",
                self._log_ctx,
                call_id=call.id,
                name=call.name,
                error=message,
            )
            self._emit("function_call_failed", payload={"call_id": call.id, "name": call.name, "error": message})
            return FunctionResponse(call_id=call.id, name=call.name, result={"error": message})

        self._emit("function_call_completed", payload={"call_id": call.id, "name": call.name, "result": result})
        return FunctionResponse(call_id=call.id, name=call.name, result=result)

    # ---- 取消 ----------------------------------------------------

    def _raise_if_cancelled(self) -> None:
        if self._cancel_requested:
            raise ConversationCancelled(code="CANCELLED", message="conversation cancelled by caller")

    async def _until_cancelled(self, awaitable: Awaitable[Any]) -> Any:
        """等待 awaitable，调用方取消时放弃等待并抛出 ConversationCancelled。"""

        task = asyncio.ensure_future(awaitable)
        if self._cancel_event is None:
            return await task
        waiter = asyncio.ensure_future(self._cancel_event.wait())
        try:
            done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
        if task in done:
            return task.result()
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        self._raise_if_cancelled()
        return None

    # ---- 事件、持久化与日志 ---------------------------------------

    def _set_state(self, new_state: OrchestratorState) -> None:
        previous = self._state
        if previous == new_state:
            return
        self._state = new_state
        self._emit("state_changed", payload={"previous": previous.value, "current": new_state.value})

    def _record(self, message: UnifiedMessage) -> None:
        """消息已追加到会话：持久化并通知监听器。"""

        if self._session_store is not None:
            self._session_store.save(self._conversation)
        self._log(
            logging.INFO,
            "Appended message",
            self._log_ctx,
            message_id=message.id,
            role=message.role,
            function_calls=len(message.function_calls),
            function_responses=len(message.function_responses),
        )
        self._emit("message_appended", message=message)

    def _emit(
        self,
        kind: EventKind,
        message: Optional[UnifiedMessage] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> None:
        event = OrchestratorEvent(kind=kind, state=self._state, message=message, payload=payload or {})
        for listener in list(self._listeners):
            listener(event)

    @staticmethod
    def _log(level: int, message: str, log_ctx: Dict[str, Any], **fields: Any) -> None:
        payload = dict(log_ctx)
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})

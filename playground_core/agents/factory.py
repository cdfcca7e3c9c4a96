from typing import List, Optional

from playground_core.agents.orchestrator import ConversationOrchestrator, OrchestratorConfig
from playground_core.agents.retry import RetryPolicy
from playground_core.config.settings import settings
from playground_core.infrastructure.storage.json_store import JsonSessionStore
from playground_core.providers import create_adapter
from playground_core.providers.transport import HttpxTransport
from playground_core.tools.definitions import FunctionTool, default_function_tools
from playground_core.tools.executor import FunctionToolExecutor


def create_orchestrator(
    provider: Optional[str] = None,
    session_id: Optional[str] = None,
    tools: Optional[List[FunctionTool]] = None,
) -> ConversationOrchestrator:
    """按全局 settings 组装一个编排器。

    全局配置只在这里读取一次，拆成各组件自己的配置对象后注入。
    传入 session_id 时会话保存在 storage_root/sessions 下，并在创建时恢复。
    """

    tools = tools if tools is not None else default_function_tools()
    store = JsonSessionStore(session_id) if session_id else None
    return ConversationOrchestrator(
        create_adapter(provider),
        HttpxTransport(timeout=settings.http_timeout),
        FunctionToolExecutor(tools, timeout=settings.http_timeout),
        session_store=store,
        tools=tools,
        config=OrchestratorConfig(
            max_rounds=settings.max_tool_rounds,
            system_prompt=settings.system_prompt,
        ),
        retry_policy=RetryPolicy(
            max_retries=settings.retry_max_retries,
            base_delay=settings.retry_delay,
            strategy=settings.retry_strategy,
        ),
    )

"""Playground Core 顶层包。

该包提供多厂商 LLM 对话的核心实现：与厂商无关的统一会话模型、
OpenAI / Gemini 协议适配器、函数调用 id 关联、带重试的会话编排器，
以及配置加载、工具执行与会话持久化等能力。
"""

from playground_core.agents.factory import create_orchestrator
from playground_core.agents.orchestrator import (
    ConversationOrchestrator,
    OrchestratorConfig,
    OrchestratorEvent,
    OrchestratorState,
)
from playground_core.domain.models import UnifiedConversation, UnifiedMessage

__all__ = [
    "ConversationOrchestrator",
    "OrchestratorConfig",
    "OrchestratorEvent",
    "OrchestratorState",
    "UnifiedConversation",
    "UnifiedMessage",
    "create_orchestrator",
]

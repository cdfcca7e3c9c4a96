"""LangGraph construction for the request/response/tool loop."""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict

from langgraph.graph import END, START, StateGraph
from langgraph.graph.state import CompiledStateGraph

from playground_core.flows.state import ConversationState

NodeFunc = Callable[[ConversationState], Awaitable[Dict[str, Any]]]


def entry_router(state: ConversationState) -> str:
    # resume() 时会话可能停在未执行的函数调用上
    if state.get("pending_calls"):
        return "tools"
    return "provider"


def provider_router(state: ConversationState) -> str:
    if state.get("pending_calls"):
        return "tools"
    return "end"


def build_conversation_graph(provider_node: NodeFunc, tools_node: NodeFunc) -> CompiledStateGraph:
    """provider -> (tools -> provider)* -> END。

    provider_node 负责一次 LLM 往返并追加 assistant 消息，
    tools_node 执行该消息中的全部函数调用并追加响应。
    """

    graph = StateGraph(ConversationState)
    graph.add_node("provider", provider_node)
    graph.add_node("tools", tools_node)
    graph.add_conditional_edges(START, entry_router, {"provider": "provider", "tools": "tools"})
    graph.add_conditional_edges("provider", provider_router, {"tools": "tools", "end": END})
    graph.add_edge("tools", "provider")
    return graph.compile()


def recursion_limit_for(max_rounds: int) -> int:
    """每轮最多经过 provider + tools 两个节点，再留出 resume 的余量。"""

    return 2 * max_rounds + 4

from playground_core.domain.models import (
    FunctionCall,
    FunctionResponse,
    UnifiedConversation,
    UnifiedMessage,
)


def test_messages_get_unique_ids_and_monotonic_timestamps():
    conv = UnifiedConversation()
    m1 = conv.add_user_message("hi")
    m2 = conv.add_assistant_message("hello")
    m3 = conv.add_user_message("again")
    assert m1.id.startswith("m-")
    assert len({m1.id, m2.id, m3.id}) == 3
    assert m1.timestamp < m2.timestamp < m3.timestamp


def test_effective_system_prompt_prefers_explicit_value():
    conv = UnifiedConversation(system_prompt="explicit")
    conv.append(UnifiedMessage(role="system", content="from message"))
    assert conv.effective_system_prompt() == "explicit"

    conv2 = UnifiedConversation()
    conv2.append(UnifiedMessage(role="system", content="from message"))
    assert conv2.effective_system_prompt() == "from message"
    assert UnifiedConversation().effective_system_prompt() is None


def test_pending_function_calls_tracks_unanswered_calls():
    conv = UnifiedConversation()
    conv.add_user_message("weather")
    calls = [
        FunctionCall(id="c1", name="get_weather", arguments={"location": "taipei"}),
        FunctionCall(id="c2", name="get_weather", arguments={"location": "tokyo"}),
    ]
    conv.add_assistant_message(None, calls)
    assert [c.id for c in conv.pending_function_calls()] == ["c1", "c2"]

    conv.add_function_responses([FunctionResponse(call_id="c1", name="get_weather", result={"t": 1})])
    assert [c.id for c in conv.pending_function_calls()] == ["c2"]
    assert conv.known_call_ids() == {"c1", "c2"}


def test_add_function_responses_keeps_batch_in_one_message():
    conv = UnifiedConversation()
    conv.add_assistant_message(None, [FunctionCall(id="a", name="f"), FunctionCall(id="b", name="f")])
    msg = conv.add_function_responses(
        [FunctionResponse(call_id="a", name="f", result=1), FunctionResponse(call_id="b", name="f", result=2)]
    )
    assert msg.role == "tool-result"
    assert [r.call_id for r in msg.function_responses] == ["a", "b"]
    assert conv.pending_function_calls() == []


def test_conversation_dict_roundtrip():
    conv = UnifiedConversation(system_prompt="sys")
    conv.add_user_message("hi")
    conv.add_assistant_message(None, [FunctionCall(id="c1", name="fetch", arguments={"url": "https://x"})])
    conv.add_function_responses([FunctionResponse(call_id="c1", name="fetch", result={"status": 200})])

    restored = UnifiedConversation.from_dict(conv.to_dict())
    assert restored == conv

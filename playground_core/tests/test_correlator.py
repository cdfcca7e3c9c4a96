import pytest

from playground_core.domain.exceptions import MalformedResponseError, UnsupportedShapeError
from playground_core.domain.models import FunctionCall, FunctionResponse, UnifiedConversation
from playground_core.providers.correlator import FunctionCallCorrelator, IdPolicy, check_responses


def test_synthesized_ids_distinct_for_same_function_in_one_turn():
    correlator = FunctionCallCorrelator(IdPolicy.SYNTHESIZE)
    calls = correlator.assign(
        [
            (None, "get_weather", {"location": "taipei"}),
            (None, "get_weather", {"location": "tokyo"}),
            (None, "get_weather", {"location": "osaka"}),
        ]
    )
    ids = [c.id for c in calls]
    assert len(set(ids)) == 3
    assert all(i.startswith("call_get_weather_") for i in ids)
    assert [c.arguments["location"] for c in calls] == ["taipei", "tokyo", "osaka"]


def test_synthesize_policy_ignores_vendor_ids():
    correlator = FunctionCallCorrelator(IdPolicy.SYNTHESIZE)
    calls = correlator.assign([("same", "f", {}), ("same", "f", {})])
    assert calls[0].id != calls[1].id


def test_synthesized_ids_avoid_ids_taken_in_conversation(monkeypatch):
    hexes = iter(["a" * 32, "a" * 32, "b" * 32])

    class FakeUUID:
        def __init__(self, value):
            self.hex = value

    monkeypatch.setattr("playground_core.providers.correlator.uuid4", lambda: FakeUUID(next(hexes)))
    correlator = FunctionCallCorrelator(IdPolicy.SYNTHESIZE)
    taken = {"call_f_" + "a" * 12}
    calls = correlator.assign([(None, "f", {})], taken)
    assert calls[0].id == "call_f_" + "b" * 12


def test_vendor_ids_preserved_verbatim():
    correlator = FunctionCallCorrelator(IdPolicy.VENDOR)
    calls = correlator.assign([("call_abc", "f", {}), ("call_def", "f", {})], {"call_abc"})
    assert [c.id for c in calls] == ["call_abc", "call_def"]


def test_vendor_policy_fills_missing_ids():
    correlator = FunctionCallCorrelator(IdPolicy.VENDOR)
    calls = correlator.assign([(None, "f", {}), ("", "f", {}), ("v1", "f", {})])
    assert calls[2].id == "v1"
    assert len({c.id for c in calls}) == 3


def test_duplicate_vendor_ids_in_one_turn_rejected():
    correlator = FunctionCallCorrelator(IdPolicy.VENDOR)
    with pytest.raises(MalformedResponseError):
        correlator.assign([("dup", "f", {}), ("dup", "g", {})])


def test_check_responses_rejects_orphan():
    conv = UnifiedConversation()
    conv.add_user_message("hi")
    conv.add_function_responses([FunctionResponse(call_id="missing", name="f", result={})])
    with pytest.raises(UnsupportedShapeError) as exc:
        check_responses(conv)
    assert exc.value.code == "ORPHAN_FUNCTION_RESPONSE"


def test_check_responses_rejects_response_before_call():
    conv = UnifiedConversation()
    conv.add_function_responses([FunctionResponse(call_id="c1", name="f", result={})])
    conv.add_assistant_message(None, [FunctionCall(id="c1", name="f")])
    with pytest.raises(UnsupportedShapeError):
        check_responses(conv)


def test_check_responses_accepts_matched_pairs():
    conv = UnifiedConversation()
    conv.add_assistant_message(None, [FunctionCall(id="c1", name="f")])
    conv.add_function_responses([FunctionResponse(call_id="c1", name="f", result={})])
    check_responses(conv)

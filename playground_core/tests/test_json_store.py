import json
import tempfile
from pathlib import Path

import pytest

from playground_core.domain.exceptions import BusinessError
from playground_core.domain.models import FunctionCall, FunctionResponse, UnifiedConversation
from playground_core.infrastructure.storage.json_store import JsonSessionStore


def test_json_store_save_and_load():
    with tempfile.TemporaryDirectory() as d:
        root = Path(d) / ".storage"
        store = JsonSessionStore("s1", root=root)
        assert store.load() is None

        conv = UnifiedConversation(system_prompt="sys")
        conv.add_user_message("hi")
        conv.add_assistant_message(None, [FunctionCall(id="c1", name="get_weather", arguments={"location": "taipei"})])
        conv.add_function_responses([FunctionResponse(call_id="c1", name="get_weather", result={"temp": 30})])
        store.save(conv)

        path = root / "sessions" / "s1.json"
        assert path.exists()
        assert json.loads(path.read_text(encoding="utf-8"))["id"] == "s1"
        assert list((root / "sessions").glob("*.tmp")) == []

        loaded = JsonSessionStore("s1", root=root).load()
        assert loaded == conv


def test_json_store_list_and_delete():
    with tempfile.TemporaryDirectory() as d:
        root = Path(d) / ".storage"
        JsonSessionStore("a", root=root).save(UnifiedConversation())
        store = JsonSessionStore("b", root=root)
        store.save(UnifiedConversation())
        assert JsonSessionStore.list_sessions(root) == ["a", "b"]

        store.delete()
        assert JsonSessionStore.list_sessions(root) == ["a"]
        with pytest.raises(BusinessError):
            store.delete()


def test_json_store_corrupt_file():
    with tempfile.TemporaryDirectory() as d:
        root = Path(d) / ".storage"
        store = JsonSessionStore("bad", root=root)
        store.path.write_text("{not json", encoding="utf-8")
        with pytest.raises(BusinessError) as exc:
            store.load()
        assert exc.value.code == "STORE_READ_ERROR"

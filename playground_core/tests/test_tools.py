import asyncio

import httpx
import pytest

from playground_core.domain.exceptions import ExecutionError
from playground_core.tools.definitions import FunctionTool, default_function_tools
from playground_core.tools.executor import FunctionToolExecutor


def test_default_tools():
    tools = {t.name: t for t in default_function_tools()}
    assert tools["fetch"].is_builtin
    assert tools["fetch"].parameters["required"] == ["url"]
    assert not tools["get_weather"].is_builtin
    assert tools["get_weather"].mock_response


def test_mock_response_json_and_raw():
    executor = FunctionToolExecutor(
        [
            FunctionTool(name="json_tool", description="", mock_response='{"a": 1}'),
            FunctionTool(name="text_tool", description="", mock_response="plain text"),
        ]
    )
    assert asyncio.run(executor.execute("json_tool", {})) == {"a": 1}
    assert asyncio.run(executor.execute("text_tool", {})) == {"result": "plain text"}


def test_unknown_and_disabled_tools_raise():
    executor = FunctionToolExecutor([FunctionTool(name="off", description="", enabled=False)])
    with pytest.raises(ExecutionError) as exc:
        asyncio.run(executor.execute("missing", {}))
    assert exc.value.code == "UNKNOWN_TOOL"
    with pytest.raises(ExecutionError) as exc:
        asyncio.run(executor.execute("off", {}))
    assert exc.value.code == "TOOL_DISABLED"


def test_handlers_sync_and_async():
    async def async_handler(args):
        return {"async": args["x"]}

    executor = FunctionToolExecutor(
        [FunctionTool(name="s", description=""), FunctionTool(name="a", description="")],
        handlers={"s": lambda args: args["x"] * 2, "a": async_handler},
    )
    assert asyncio.run(executor.execute("s", {"x": 2})) == 4
    assert asyncio.run(executor.execute("a", {"x": 3})) == {"async": 3}


def install_client(monkeypatch, calls, error=None):
    class Resp:
        status_code = 200
        reason_phrase = "OK"
        headers = {"content-type": "text/plain"}
        text = "hello"

    class Client:
        def __init__(self, *a, **kw):
            pass

        async def __aenter__(self):
            return self

        async def __aexit__(self, *a):
            return False

        async def request(self, method, url, headers=None, content=None):
            calls.append((method, url, headers, content))
            if error is not None:
                raise error
            return Resp()

    monkeypatch.setattr("httpx.AsyncClient", Client)


def test_fetch_tool(monkeypatch):
    calls = []
    install_client(monkeypatch, calls)
    executor = FunctionToolExecutor()
    result = asyncio.run(
        executor.execute("fetch", {"url": "https://example.com", "method": "post", "body": {"q": 1}})
    )
    assert result == {
        "status": 200,
        "status_text": "OK",
        "headers": {"content-type": "text/plain"},
        "body": "hello",
    }
    assert calls == [("POST", "https://example.com", {}, '{"q": 1}')]


def test_fetch_get_drops_body(monkeypatch):
    calls = []
    install_client(monkeypatch, calls)
    asyncio.run(FunctionToolExecutor().execute("fetch", {"url": "https://example.com", "body": "x"}))
    assert calls[0][0] == "GET"
    assert calls[0][3] is None


def test_fetch_errors(monkeypatch):
    calls = []
    install_client(monkeypatch, calls, error=httpx.ConnectError("refused"))
    executor = FunctionToolExecutor()
    with pytest.raises(ExecutionError) as exc:
        asyncio.run(executor.execute("fetch", {"url": "https://example.com"}))
    assert exc.value.code == "FETCH_FAILED"
    with pytest.raises(ExecutionError):
        asyncio.run(executor.execute("fetch", {}))
    with pytest.raises(ExecutionError):
        asyncio.run(executor.execute("fetch", {"url": "https://example.com", "method": "PATCH"}))

"""函数工具定义。

FunctionTool 描述了一个可以暴露给 LLM 的函数：
- parameters 是 JSON Schema（object 类型），各适配器原样转成厂商格式。
- mock_response 用于演示或测试：非内置工具被调用时直接返回它。
- is_builtin 为 True 的工具（例如 fetch）由执行器真正执行。
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class FunctionTool:
    """一个可供 LLM 调用的函数工具。"""

    name: str
    description: str
    parameters: Dict[str, Any] = field(
        default_factory=lambda: {"type": "object", "properties": {}, "required": []}
    )
    mock_response: Optional[str] = None
    enabled: bool = True
    category: str = "custom"
    is_builtin: bool = False


def enabled_tools(tools: Optional[List[FunctionTool]]) -> List[FunctionTool]:
    return [tool for tool in tools or [] if tool.enabled]


def fetch_tool() -> FunctionTool:
    return FunctionTool(
        name="fetch",
        description="Make HTTP requests to fetch data from URLs. Supports GET, POST, PUT, DELETE methods.",
        parameters={
            "type": "object",
            "properties": {
                "url": {"type": "string", "description": "The URL to fetch"},
                "method": {
                    "type": "string",
                    "enum": ["GET", "POST", "PUT", "DELETE"],
                    "description": "HTTP method (default: GET)",
                },
                "headers": {"type": "object", "description": "HTTP headers to send"},
                "body": {"type": "string", "description": "Request body for POST/PUT requests"},
            },
            "required": ["url"],
        },
        category="web",
        is_builtin=True,
    )


def weather_tool() -> FunctionTool:
    return FunctionTool(
        name="get_weather",
        description="Get the current weather for a city.",
        parameters={
            "type": "object",
            "properties": {
                "location": {"type": "string", "description": "City name, e.g. Taipei"},
            },
            "required": ["location"],
        },
        mock_response='{"temperature": 22, "condition": "Sunny", "humidity": 65}',
        category="demo",
    )


def default_function_tools() -> List[FunctionTool]:
    """默认工具集：内置 fetch + 演示用的 get_weather。"""

    return [fetch_tool(), weather_tool()]

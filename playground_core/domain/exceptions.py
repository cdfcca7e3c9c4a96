"""统一业务异常模型。

所有跨模块抛出的业务级错误都应该继承自 BusinessError，
便于在编排层或 UI 层做统一捕获与用户提示。

retryable 标记决定 RetryPolicy 是否会对该错误做退避重试：
只有限流、网络错误与服务端 5xx 属于瞬时错误。
"""


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "RATE_LIMIT"）。
        message: 用户可读错误信息。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 provider、call_id 等）。
    """

    retryable = False

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class TransportError(BusinessError):
    """网络层错误，例如连接失败、超时等。"""

    retryable = True


# 旧名称，保留给按 NetworkError 捕获的调用方
NetworkError = TransportError


class RateLimitError(BusinessError):
    """Provider 限流错误（HTTP 429），由 RetryPolicy 负责退避重试。"""

    retryable = True


class ServerError(BusinessError):
    """Provider 返回 5xx，视为瞬时错误。"""

    retryable = True


class AuthError(BusinessError):
    """API Key 无效或权限不足（401/403），不可重试。"""


class ApiError(BusinessError):
    """第三方 API 返回其他 4xx 错误时抛出。"""


class MalformedResponseError(BusinessError):
    """厂商响应无法解析：既没有 content 也没有可识别的函数调用结构。"""


class UnsupportedShapeError(BusinessError):
    """渲染请求时发现会话结构违反约束，例如孤立的函数响应。"""


class ExecutionError(BusinessError):
    """工具执行失败。

    编排器不会因此中断会话，而是把错误作为函数响应回传给模型。
    """


class LoopLimitExceeded(BusinessError):
    """模型持续请求函数调用，超过了单次提交允许的往返轮数。"""


class ConversationCancelled(BusinessError):
    """调用方取消了进行中的会话。"""


class ValidationError(BusinessError):
    """参数或配置校验失败。"""

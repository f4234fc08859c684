"""统一业务异常模型。

所有跨模块抛出的业务级错误都应该继承自 BusinessError，
便于在控制器或展示层做统一捕获。RemoteError 及其子类表示
远端调用失败，由 TurnController 转换为错误消息，不会让进程崩溃。
"""


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "API_ERROR"）。
        message: 诊断用错误信息，不直接展示给用户。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 provider、model 等）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class RemoteError(BusinessError):
    """远端调用失败的基类。"""


class NetworkError(RemoteError):
    """网络层错误，例如连接失败、超时等。"""


class ApiError(RemoteError):
    """第三方 API 返回非 2xx/429 错误时抛出。"""


class RateLimitError(RemoteError):
    """Provider 限流错误。本项目不做重试，直接作为失败回合处理。"""


class SessionUnavailableError(RemoteError):
    """发送时无法得到会话句柄。"""


class ValidationError(BusinessError):
    """参数或配置校验失败。"""

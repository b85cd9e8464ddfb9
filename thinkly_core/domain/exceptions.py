"""统一业务异常模型。

所有跨模块抛出的业务级错误都继承自 BusinessError，
便于在服务层或 UI 层做统一捕获与用户提示。
"""


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "STORE_READ_ERROR"）。
        message: 用户可读错误信息。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 provider）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class InvalidInput(BusinessError):
    """用户输入为空（去除空白后）。"""


class InvalidModel(BusinessError):
    """未知的 Provider 标识。"""


class PersistenceReadError(BusinessError):
    """本地持久化数据无法解析。会话层会就地恢复为空列表。"""


class PersistenceWriteError(BusinessError):
    """本地持久化写入失败。"""


class ProviderError(BusinessError):
    """Provider 调用失败的基类，message 可直接展示给用户。"""

    def __init__(self, code: str, message: str, http_status: int = 502, provider: str = "", **extra):
        super().__init__(code=code, message=message, http_status=http_status, provider=provider, **extra)
        self.provider = provider


class BadRequest(ProviderError):
    """4xx：请求参数被 Provider 拒绝。"""


class Unauthorized(ProviderError):
    """401/403 或未配置 API 密钥。"""


class RateLimited(ProviderError):
    """429：Provider 限流，是否重试由调用方决定。"""


class ServerError(ProviderError):
    """5xx：Provider 服务端临时故障。"""


class NetworkError(ProviderError):
    """网络层错误，例如连接失败、超时等（没有收到响应）。"""


class MalformedResponse(ProviderError):
    """响应不是合法 JSON，或缺少回答文本。"""

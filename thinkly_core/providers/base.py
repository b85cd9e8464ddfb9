"""Provider 抽象接口。

会话层不直接依赖具体厂商的 HTTP 细节，而是依赖此协议：

- 每个厂商实现一个 ProviderClient（GeminiClient、MistralClient）。
- 负责：把 (message, history) 转成具体 API 请求，并把响应 JSON
  归一化为 ProviderSuccess，或把失败分类为 ProviderError 子类。

send() 把异常收敛成 ProviderFailure，调用方只需判断 result.success。
"""

from dataclasses import dataclass
from typing import Any, Optional, Protocol, Sequence

import httpx

from thinkly_core.domain.exceptions import (
    BadRequest,
    ProviderError,
    RateLimited,
    ServerError,
    Unauthorized,
)
from thinkly_core.domain.models import ChatTurn, ProviderFailure, ProviderResult, ProviderSuccess


RATE_LIMIT_MESSAGE = "Rate limit exceeded. Please wait a moment and try again."
NETWORK_ERROR_MESSAGE = "Network error. Please check your internet connection."


@dataclass
class ApiKeyStatus:
    valid: bool
    error: Optional[str] = None


class ProviderClient(Protocol):
    """LLM Provider 客户端协议。

    实现者需要提供：
    - name: Provider 标识（gemini / mistral），用于日志与消息标签。
    - chat(message, history): 执行一次非流式调用，失败抛 ProviderError。
    - send(message, history): 同 chat，但失败以 ProviderFailure 返回。
    """

    name: str

    def chat(self, message: str, history: Sequence[ChatTurn]) -> ProviderSuccess:
        ...

    def send(self, message: str, history: Sequence[ChatTurn]) -> ProviderResult:
        ...

    def validate_api_key(self) -> ApiKeyStatus:
        ...


def token_count(value: Any) -> Optional[int]:
    """厂商返回的 token 数；不是非负整数时返回 None。"""
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        return None
    return value


def send_with_result(client: ProviderClient, message: str, history: Sequence[ChatTurn]) -> ProviderResult:
    """调用 client.chat，把 ProviderError 收敛为 ProviderFailure。"""

    try:
        return client.chat(message, history)
    except ProviderError as e:
        return ProviderFailure(provider=client.name, error=e)


def classify_http_error(resp: httpx.Response, provider: str, label: str) -> ProviderError:
    """把 >=400 的响应映射为具体的 ProviderError 子类。

    label 是展示给用户的厂商名（如 "Gemini"）。
    """

    status = resp.status_code
    try:
        data = resp.json()
    except ValueError:
        data = {}
    error_obj = data.get("error") if isinstance(data, dict) else None
    detail = ""
    error_code = ""
    if isinstance(error_obj, dict):
        detail = error_obj.get("message") or ""
        error_code = str(error_obj.get("code") or "")
    elif isinstance(data, dict):
        detail = data.get("message") or ""

    if status == 429:
        return RateLimited(code="RATE_LIMIT", message=RATE_LIMIT_MESSAGE, http_status=status, provider=provider, detail=detail)
    if status in (401, 403):
        return Unauthorized(
            code="UNAUTHORIZED",
            message=f"Invalid API key. Please check your {label} API key.",
            http_status=status,
            provider=provider,
            detail=detail,
        )
    if status == 400:
        return BadRequest(
            code="BAD_REQUEST",
            message=f"Invalid request to {label} API. Please check your input.",
            http_status=status,
            provider=provider,
            detail=detail,
        )
    if status >= 500:
        return ServerError(
            code="SERVER_ERROR",
            message=f"{label} server error. Please try again later.",
            http_status=status,
            provider=provider,
            detail=detail,
        )
    return BadRequest(
        code="API_ERROR",
        message=detail or f"API Error ({status}): {error_code or 'Unknown error'}",
        http_status=status,
        provider=provider,
    )

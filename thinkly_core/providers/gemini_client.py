"""Gemini Provider 适配器。

本模块负责：

1. 接收 (message, history)。
2. 将其转换为 Gemini generateContent 的请求格式：
   user → user，assistant → model，error 等其他角色不转发。
3. 经过限速器后发出 HTTP 请求，并把网络/HTTP 错误分类为 ProviderError。
4. 将 candidates[0].content.parts[0].text 归一化为 ProviderSuccess。

认证方式是 URL 查询参数 ?key=<api_key>。
"""

from typing import Any, Dict, List, Optional, Sequence

import httpx

from thinkly_core.config.settings import settings
from thinkly_core.domain.exceptions import (
    InvalidInput,
    MalformedResponse,
    NetworkError,
    ProviderError,
    RateLimited,
    Unauthorized,
)
from thinkly_core.domain.models import ChatTurn, ProviderResult, ProviderSuccess, TokenUsage
from thinkly_core.infrastructure.logging.logger import logger
from thinkly_core.providers.base import (
    NETWORK_ERROR_MESSAGE,
    RATE_LIMIT_MESSAGE,
    ApiKeyStatus,
    classify_http_error,
    send_with_result,
    token_count,
)
from thinkly_core.providers.rate_limiter import RateLimiter
from thinkly_core.providers.registry import GEMINI_CONFIG, ProviderConfig

# Gemini 的角色名与会话内角色的映射；不在表中的角色不会发给厂商
ROLE_MAP = {"user": "user", "assistant": "model"}


class GeminiClient:
    """Gemini 客户端实现。"""

    name = "gemini"
    label = "Gemini"

    def __init__(self, cfg=settings, rate_limiter: Optional[RateLimiter] = None, config: ProviderConfig = GEMINI_CONFIG):
        self._settings = cfg
        self._config = config
        self._limiter = rate_limiter or RateLimiter(
            min_interval=getattr(cfg, "min_request_interval", 1.0),
            name=self.name,
        )

    @property
    def rate_limiter(self) -> RateLimiter:
        return self._limiter

    def chat(self, message: str, history: Sequence[ChatTurn]) -> ProviderSuccess:
        """执行一次非流式调用。

        步骤：
        1. 校验输入与 API 密钥。
        2. 等待限速器放行。
        3. 构造 payload 并发送请求。
        4. 解析回答文本与 token 统计。
        """

        text = (message or "").strip()
        if not text:
            raise InvalidInput(code="EMPTY_MESSAGE", message="Message must not be empty")
        self._require_api_key()
        self._limiter.wait()
        payload = self._build_payload(text, history)
        logger.info(
            "Sending request to Gemini",
            extra={"extra": {"provider": self.name, "history_len": len(history), "content_count": len(payload["contents"])}},
        )
        data = self._post(payload)
        return self._parse_response(data)

    def send(self, message: str, history: Sequence[ChatTurn]) -> ProviderResult:
        return send_with_result(self, message, history)

    def validate_api_key(self) -> ApiKeyStatus:
        """发一个极小的请求验证密钥是否可用。"""

        if not self._api_key():
            return ApiKeyStatus(valid=False, error="Gemini API key not configured")
        self._limiter.wait()
        payload = {
            "contents": [{"role": "user", "parts": [{"text": "Hello"}]}],
            "generationConfig": {"maxOutputTokens": 5},
        }
        try:
            self._post(payload)
        except Unauthorized:
            return ApiKeyStatus(valid=False, error="Invalid API key")
        except RateLimited:
            return ApiKeyStatus(valid=False, error=RATE_LIMIT_MESSAGE)
        except ProviderError as e:
            logger.warning("Gemini API key validation failed", extra={"extra": {"code": e.code, "error": e.message}})
            return ApiKeyStatus(valid=False, error="Unable to validate API key")
        return ApiKeyStatus(valid=True)

    # ---- 辅助方法 ----

    def _api_key(self) -> Optional[str]:
        return getattr(self._settings, "gemini_api_key", None)

    def _require_api_key(self) -> str:
        api_key = self._api_key()
        if not api_key:
            # 配置缺失按 Unauthorized 处理，方便上层统一展示
            raise Unauthorized(
                code="MISSING_API_KEY",
                message="Gemini API key not found. Please set GEMINI_API_KEY in your .env file.",
                provider=self.name,
            )
        return api_key

    def _endpoint(self) -> str:
        base = getattr(self._settings, "gemini_base_url", None) or self._config.base_url
        model = getattr(self._settings, "gemini_model", None) or self._config.model
        return f"{base.rstrip('/')}/models/{model}:generateContent"

    def _post(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        api_key = self._require_api_key()
        try:
            with httpx.Client(timeout=self._settings.http_timeout, trust_env=False) as client:
                resp = client.post(
                    self._endpoint(),
                    params={"key": api_key},
                    json=payload,
                    headers={"Content-Type": "application/json"},
                )
        except httpx.RequestError as e:
            logger.warning("Gemini network error", extra={"extra": {"provider": self.name, "error": str(e)}})
            raise NetworkError(code="NETWORK_ERROR", message=NETWORK_ERROR_MESSAGE, provider=self.name, detail=str(e))
        if resp.status_code >= 400:
            err = classify_http_error(resp, self.name, self.label)
            logger.warning(
                "Gemini API error",
                extra={"extra": {"provider": self.name, "status": resp.status_code, "code": err.code}},
            )
            raise err
        try:
            data = resp.json()
        except ValueError:
            raise self._malformed()
        if not isinstance(data, dict):
            raise self._malformed()
        return data

    def _build_payload(self, message: str, history: Sequence[ChatTurn]) -> Dict[str, Any]:
        """将历史与当前消息转成 Gemini 所需的请求 JSON。"""

        contents: List[Dict[str, Any]] = []
        for turn in history:
            role = ROLE_MAP.get(turn.role)
            if role is None:
                continue
            contents.append({"role": role, "parts": [{"text": turn.content}]})
        contents.append({"role": "user", "parts": [{"text": message}]})
        cfg = self._config
        return {
            "contents": contents,
            "generationConfig": {
                "temperature": cfg.temperature,
                "topK": cfg.top_k,
                "topP": cfg.top_p,
                "maxOutputTokens": cfg.max_tokens,
            },
            "safetySettings": [dict(s) for s in cfg.safety_settings],
        }

    def _parse_response(self, data: Dict[str, Any]) -> ProviderSuccess:
        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            raise self._malformed()
        if not isinstance(text, str) or not text:
            raise self._malformed()

        meta = data.get("usageMetadata")
        if not isinstance(meta, dict):
            meta = {}
        total = token_count(meta.get("totalTokenCount"))
        if total is not None:
            usage = TokenUsage(
                total_tokens=total,
                prompt_tokens=token_count(meta.get("promptTokenCount")),
                completion_tokens=token_count(meta.get("candidatesTokenCount")),
            )
        else:
            # 厂商未返回统计时按字符数粗略估算
            usage = TokenUsage(total_tokens=len(text), estimated=True)
        return ProviderSuccess(provider=self.name, message=text, usage=usage, raw=data)

    def _malformed(self) -> MalformedResponse:
        return MalformedResponse(
            code="INVALID_RESPONSE",
            message="Invalid response format from Gemini API",
            provider=self.name,
        )

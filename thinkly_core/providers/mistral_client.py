"""Mistral Provider 适配器。

接口风格与 OpenAI 类似，使用 chat/completions 端点：
- URL: {base_url}/chat/completions
- 认证: Authorization: Bearer <api_key>

user/assistant 原样转发；error 消息只在本地展示，不发给厂商。
超时与限速策略与 Gemini 保持一致。
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
from thinkly_core.providers.registry import MISTRAL_CONFIG, ProviderConfig

FORWARDED_ROLES = {"user", "assistant"}


class MistralClient:
    """Mistral 客户端实现。"""

    name = "mistral"
    label = "Mistral"

    def __init__(self, cfg=settings, rate_limiter: Optional[RateLimiter] = None, config: ProviderConfig = MISTRAL_CONFIG):
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
        text = (message or "").strip()
        if not text:
            raise InvalidInput(code="EMPTY_MESSAGE", message="Message must not be empty")
        api_key = self._require_api_key()
        self._limiter.wait()
        payload = self._build_payload(text, history)
        logger.info(
            "Sending request to Mistral",
            extra={"extra": {"provider": self.name, "history_len": len(history), "model": payload["model"]}},
        )
        resp = self._request("POST", "/chat/completions", api_key, json=payload)
        try:
            data = resp.json()
        except ValueError:
            raise self._malformed()
        return self._parse_response(data)

    def send(self, message: str, history: Sequence[ChatTurn]) -> ProviderResult:
        return send_with_result(self, message, history)

    def validate_api_key(self) -> ApiKeyStatus:
        """通过列出模型接口验证密钥，不消耗生成额度。"""

        api_key = getattr(self._settings, "mistral_api_key", None)
        if not api_key:
            return ApiKeyStatus(valid=False, error="Mistral API key not configured")
        self._limiter.wait()
        try:
            self._request("GET", "/models", api_key)
        except Unauthorized:
            return ApiKeyStatus(valid=False, error="Invalid API key")
        except RateLimited:
            return ApiKeyStatus(valid=False, error=RATE_LIMIT_MESSAGE)
        except ProviderError as e:
            logger.warning("Mistral API key validation failed", extra={"extra": {"code": e.code, "error": e.message}})
            return ApiKeyStatus(valid=False, error="Unable to validate API key")
        return ApiKeyStatus(valid=True)

    # ---- 辅助方法 ----

    def _require_api_key(self) -> str:
        api_key = getattr(self._settings, "mistral_api_key", None)
        if not api_key:
            raise Unauthorized(
                code="MISSING_API_KEY",
                message="Mistral API key not found. Please set MISTRAL_API_KEY in your .env file.",
                provider=self.name,
            )
        return api_key

    def _request(self, method: str, path: str, api_key: str, **kwargs: Any) -> httpx.Response:
        base = getattr(self._settings, "mistral_base_url", None) or self._config.base_url
        try:
            with httpx.Client(timeout=self._settings.http_timeout, trust_env=False) as client:
                resp = client.request(
                    method,
                    f"{base.rstrip('/')}{path}",
                    headers={
                        "Authorization": f"Bearer {api_key}",
                        "Content-Type": "application/json",
                    },
                    **kwargs,
                )
        except httpx.RequestError as e:
            logger.warning("Mistral network error", extra={"extra": {"provider": self.name, "error": str(e)}})
            raise NetworkError(code="NETWORK_ERROR", message=NETWORK_ERROR_MESSAGE, provider=self.name, detail=str(e))
        if resp.status_code >= 400:
            err = classify_http_error(resp, self.name, self.label)
            logger.warning(
                "Mistral API error",
                extra={"extra": {"provider": self.name, "status": resp.status_code, "code": err.code}},
            )
            raise err
        return resp

    def _build_payload(self, message: str, history: Sequence[ChatTurn]) -> Dict[str, Any]:
        msgs: List[Dict[str, str]] = [
            {"role": turn.role, "content": turn.content}
            for turn in history
            if turn.role in FORWARDED_ROLES
        ]
        msgs.append({"role": "user", "content": message})
        cfg = self._config
        return {
            "model": getattr(self._settings, "mistral_model", None) or cfg.model,
            "messages": msgs,
            "max_tokens": cfg.max_tokens,
            "temperature": cfg.temperature,
            "stream": False,
        }

    def _parse_response(self, data: Any) -> ProviderSuccess:
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            raise self._malformed()
        if not isinstance(content, str) or not content:
            raise self._malformed()
        usage_raw = data.get("usage")
        usage = None
        if isinstance(usage_raw, dict) and token_count(usage_raw.get("total_tokens")) is not None:
            usage = TokenUsage(
                total_tokens=usage_raw["total_tokens"],
                prompt_tokens=token_count(usage_raw.get("prompt_tokens")),
                completion_tokens=token_count(usage_raw.get("completion_tokens")),
            )
        return ProviderSuccess(provider=self.name, message=content, usage=usage, raw=data)

    def _malformed(self) -> MalformedResponse:
        return MalformedResponse(
            code="INVALID_RESPONSE",
            message="Invalid response format from Mistral API",
            provider=self.name,
        )

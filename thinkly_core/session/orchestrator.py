"""一次对话交换（exchange）的编排。

状态：Idle → Sending → {Settled, Failed} → Idle。

1. 校验输入，非空才允许进入 Sending；
2. busy 为真时直接忽略（不追加消息，也不发请求）；
3. 在追加用户消息之前对历史做快照，保证发给 Provider 的历史不包含
   本次消息及之后追加的内容；
4. 成功追加 assistant 消息，失败追加 "Error: ..." 消息并记录 last_error；
5. 无论结果如何都回到 Idle，不做自动重试。
"""

import logging
import threading
import time
from typing import Any, Dict, Mapping, Optional
from uuid import uuid4

from thinkly_core.domain.exceptions import InvalidInput, InvalidModel, ProviderError
from thinkly_core.domain.models import Message, ProviderFailure, ProviderResult
from thinkly_core.infrastructure.logging.logger import logger
from thinkly_core.providers.base import ProviderClient
from thinkly_core.session.store import SessionStore


class ExchangeOrchestrator:
    def __init__(self, store: SessionStore, providers: Mapping[str, ProviderClient]):
        self._store = store
        self._providers = dict(providers)
        self._guard = threading.Lock()

    @property
    def store(self) -> SessionStore:
        return self._store

    def send(self, user_input: str) -> Optional[Message]:
        """执行一次交换。

        Returns:
            追加的 assistant 或 error 消息；若已有交换在进行中则返回 None。

        Raises:
            InvalidInput: 输入去除空白后为空（此时不会追加任何消息）。
            InvalidModel: 当前选中的模型没有对应的 Provider。
        """
        text = (user_input or "").strip()
        if not text:
            raise InvalidInput(code="EMPTY_MESSAGE", message="Message must not be empty")

        with self._guard:
            if self._store.busy:
                logger.info("Ignored send while busy", extra={"extra": {"model": self._store.selected_model}})
                return None
            model = self._store.selected_model
            provider = self._providers.get(model)
            if provider is None:
                raise InvalidModel(code="INVALID_MODEL", message=f"No provider registered for model: {model}")
            self._store.mark_busy()

        log_ctx: Dict[str, Any] = {"trace_id": f"tr-{uuid4().hex}", "model": model}
        start_time = time.time()
        try:
            history = self._store.history()
            self._store.clear_error()
            self._store.append(Message(content=text, role="user", model=model))
            self._log(logging.INFO, "Calling provider", log_ctx, history_len=len(history))

            result = self._call(provider, text, history)
            if result.success:
                reply = Message(content=result.message, role="assistant", model=model, usage=result.usage)
            else:
                error_text = f"Error: {result.message}"
                reply = Message(content=error_text, role="error", model=model)
                self._store.record_error(error_text)
                self._log(logging.WARNING, "Exchange failed", log_ctx, code=result.error.code)
            self._store.append(reply)
        finally:
            self._store.mark_idle()

        self._log(
            logging.INFO,
            "Completed exchange",
            log_ctx,
            elapsed_seconds=round(time.time() - start_time, 2),
            role=reply.role,
        )
        return reply

    @staticmethod
    def _call(provider: ProviderClient, text: str, history) -> ProviderResult:
        try:
            return provider.send(text, history)
        except ProviderError as e:
            # 直接抛出的 ProviderError 与 ProviderFailure 等价
            return ProviderFailure(provider=provider.name, error=e)

    @staticmethod
    def _log(level: int, message: str, log_ctx: Dict[str, Any], **fields: Any) -> None:
        payload = dict(log_ctx)
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})

"""会话状态存储。

SessionStore 是消息历史与模型选择的唯一所有者：

- messages 只能通过 append / clear 修改（busy 时 clear 不生效），每次修改后整体原子写入
  chat_messages 键；
- selected_model 通过 select_model 修改，单独写入 selected_model 键；
- busy / last_error 只在内存中，供编排器与界面读取。

启动时调用 rehydrate() 从本地存储恢复；历史损坏时记录日志并从空列表开始。
"""

import logging
import threading
from typing import Any, List, Tuple

from thinkly_core.domain.conversation import CHAT_MESSAGES_KEY, SELECTED_MODEL_KEY, KeyValueStore
from thinkly_core.domain.exceptions import InvalidModel, PersistenceReadError
from thinkly_core.domain.models import DEFAULT_MODEL, SUPPORTED_MODELS, ChatTurn, Message
from thinkly_core.infrastructure.logging.logger import logger


class SessionStore:
    def __init__(self, storage: KeyValueStore, default_model: str = DEFAULT_MODEL):
        if default_model not in SUPPORTED_MODELS:
            raise InvalidModel(code="INVALID_MODEL", message=f"Unknown model: {default_model}")
        self._storage = storage
        self._default_model = default_model
        self._messages: List[Message] = []
        self._selected_model: str = default_model
        self._busy = False
        self._last_error = ""
        self._lock = threading.Lock()

    # ---- 只读视图 ----

    @property
    def messages(self) -> Tuple[Message, ...]:
        return tuple(self._messages)

    @property
    def selected_model(self) -> str:
        return self._selected_model

    @property
    def busy(self) -> bool:
        return self._busy

    @property
    def last_error(self) -> str:
        return self._last_error

    def history(self) -> List[ChatTurn]:
        """当前所有消息的 {role, content} 快照（按插入顺序）。"""
        return [m.to_turn() for m in self._messages]

    # ---- 修改操作 ----

    def append(self, message: Message) -> None:
        if any(m.id == message.id for m in self._messages):
            raise ValueError(f"Duplicate message id: {message.id}")
        updated = self._messages + [message]
        self._storage.set(CHAT_MESSAGES_KEY, [m.to_dict() for m in updated])
        self._messages = updated
        self._log(
            logging.INFO,
            "Appended message",
            message_id=message.id,
            role=message.role,
            model=message.model,
            count=len(updated),
        )

    def clear(self) -> bool:
        """清空历史；交换进行中时忽略并返回 False。"""
        with self._lock:
            if self._busy:
                self._log(logging.INFO, "Ignored clear while busy")
                return False
            self._storage.remove(CHAT_MESSAGES_KEY)
            self._messages = []
        self._log(logging.INFO, "Cleared conversation history")
        return True

    def select_model(self, model_id: str) -> None:
        if model_id not in SUPPORTED_MODELS:
            raise InvalidModel(code="INVALID_MODEL", message=f"Unknown model: {model_id}", model=model_id)
        self._storage.set(SELECTED_MODEL_KEY, model_id)
        previous = self._selected_model
        self._selected_model = model_id
        self._last_error = ""
        self._log(logging.INFO, "Selected model", previous=previous, model=model_id)

    def mark_busy(self) -> None:
        with self._lock:
            self._busy = True

    def mark_idle(self) -> None:
        self._busy = False

    def record_error(self, text: str) -> None:
        self._last_error = text

    def clear_error(self) -> None:
        self._last_error = ""

    # ---- 启动恢复 ----

    def rehydrate(self) -> None:
        """从本地存储恢复消息与模型选择，不向调用方抛出读取错误。"""
        self._messages = self._load_messages()
        self._selected_model = self._load_model()
        self._busy = False
        self._last_error = ""
        self._log(
            logging.INFO,
            "Rehydrated session",
            count=len(self._messages),
            model=self._selected_model,
        )

    def _load_messages(self) -> List[Message]:
        try:
            raw = self._storage.get(CHAT_MESSAGES_KEY)
            if raw is None:
                return []
            return self._decode_messages(raw)
        except PersistenceReadError as e:
            self._log(logging.ERROR, "Error loading messages", error=e.message)
            return []

    def _load_model(self) -> str:
        try:
            raw = self._storage.get(SELECTED_MODEL_KEY)
        except PersistenceReadError as e:
            self._log(logging.WARNING, "Error loading selected model", error=e.message)
            return self._default_model
        if raw in SUPPORTED_MODELS:
            return raw
        if raw is not None:
            self._log(logging.WARNING, "Ignored unknown persisted model", model=str(raw))
        return self._default_model

    @staticmethod
    def _decode_messages(raw: Any) -> List[Message]:
        if not isinstance(raw, list):
            raise PersistenceReadError(code="STORE_READ_ERROR", message="chat_messages is not a list")
        items: List[Message] = []
        seen = set()
        for entry in raw:
            try:
                msg = Message.from_dict(entry)
            except (KeyError, TypeError, ValueError) as e:
                raise PersistenceReadError(code="STORE_READ_ERROR", message=f"Corrupt message entry: {e}")
            if msg.id in seen:
                raise PersistenceReadError(code="STORE_READ_ERROR", message=f"Duplicate message id: {msg.id}")
            seen.add(msg.id)
            items.append(msg)
        return items

    @staticmethod
    def _log(level: int, message: str, **fields: Any) -> None:
        logger.log(level, message, extra={"extra": fields})


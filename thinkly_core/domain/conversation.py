from typing import Any, Optional, Protocol


# 持久化键名，与浏览器版 localStorage 保持一致
CHAT_MESSAGES_KEY = "chat_messages"
SELECTED_MODEL_KEY = "selected_model"
DARK_MODE_KEY = "darkMode"
AUTH_TOKEN_KEY = "authToken"


class KeyValueStore(Protocol):
    """本地持久化的键值存储。

    get 在键不存在时返回 None，内容损坏时抛 PersistenceReadError；
    set 必须整体原子覆盖，不允许读到半写状态。
    """

    def get(self, key: str) -> Optional[Any]:
        ...

    def set(self, key: str, value: Any) -> None:
        ...

    def remove(self, key: str) -> None:
        ...

    def contains(self, key: str) -> bool:
        ...

"""对外服务模块。

ChatService 把存储、会话、编排器、登录门禁与主题偏好组装在一起，
是界面层唯一需要依赖的入口。实例在应用启动时显式创建，
并以引用方式传给界面，不使用模块级单例。
"""

from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from thinkly_core.analytics.dashboard import compute_dashboard_stats
from thinkly_core.config.settings import settings
from thinkly_core.domain.conversation import KeyValueStore
from thinkly_core.domain.models import Message
from thinkly_core.infrastructure.logging.logger import logger
from thinkly_core.infrastructure.storage.json_store import JsonKeyValueStore
from thinkly_core.providers import create_providers
from thinkly_core.providers.base import ProviderClient
from thinkly_core.providers.registry import list_providers
from thinkly_core.session.auth import AuthGate, LoginResult
from thinkly_core.session.orchestrator import ExchangeOrchestrator
from thinkly_core.session.store import SessionStore
from thinkly_core.session.theme import ThemePreference


class ChatService:
    def __init__(
        self,
        storage: KeyValueStore,
        providers: Mapping[str, ProviderClient],
        cfg=settings,
    ):
        self._storage = storage
        self._providers = dict(providers)
        self.store = SessionStore(storage, default_model=getattr(cfg, "default_model", "gemini"))
        self.orchestrator = ExchangeOrchestrator(self.store, self._providers)
        self.auth = AuthGate(storage, cfg)
        self.theme = ThemePreference(storage)

    def start(self) -> "ChatService":
        """应用启动时调用一次，从本地存储恢复所有状态。"""
        self.store.rehydrate()
        self.auth.rehydrate()
        self.theme.rehydrate()
        return self

    # ---- 会话 ----

    def send_message(self, user_input: str) -> Optional[Dict[str, Any]]:
        """发送一条消息，返回追加的回复（assistant/error），忙碌时返回 None。

        Raises:
            各种 domain.exceptions 中定义的异常（InvalidInput 等）
        """
        reply = self.orchestrator.send(user_input)
        return reply.to_dict() if reply else None

    def clear_history(self) -> bool:
        """清空历史；交换进行中时不生效，返回 False。"""
        return self.store.clear()

    def select_model(self, model_id: str) -> None:
        self.store.select_model(model_id)

    def list_messages(self) -> List[Dict[str, Any]]:
        return [m.to_dict() for m in self.store.messages]

    def messages(self) -> List[Message]:
        return list(self.store.messages)

    def state(self) -> Dict[str, Any]:
        return {
            "selected_model": self.store.selected_model,
            "busy": self.store.busy,
            "last_error": self.store.last_error,
            "message_count": len(self.store.messages),
            "dark_mode": self.theme.is_dark_mode,
            "authenticated": self.auth.is_authenticated,
        }

    def available_models(self) -> List[Dict[str, str]]:
        return [
            {"id": cfg.name, "name": cfg.display_name, "description": cfg.description}
            for cfg in list_providers()
            if cfg.name in self._providers
        ]

    def dashboard_stats(self) -> Dict[str, Any]:
        return compute_dashboard_stats(self.store.messages).to_dict()

    # ---- 登录与主题 ----

    def login(self, username: str, password: str) -> LoginResult:
        return self.auth.login(username, password)

    def logout(self) -> None:
        self.auth.logout()

    def toggle_theme(self) -> bool:
        return self.theme.toggle()


def create_chat_service(
    storage_root: Optional[str | Path] = None,
    providers: Optional[Mapping[str, ProviderClient]] = None,
) -> ChatService:
    """按配置创建并启动 ChatService。"""
    storage = JsonKeyValueStore(root=storage_root or settings.storage_root)
    service = ChatService(storage, providers or create_providers(), settings).start()
    logger.info("Chat service started", extra={"extra": {"storage_root": str(storage.root)}})
    return service

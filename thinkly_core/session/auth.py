"""登录门禁。

只做凭据比对，用于挡住聊天界面，不是安全边界。
登录成功后在 authToken 键写入一个不透明标记，重启后据此恢复登录态。
"""

import time
from dataclasses import dataclass
from typing import Optional

from thinkly_core.config.settings import settings
from thinkly_core.domain.conversation import AUTH_TOKEN_KEY, KeyValueStore
from thinkly_core.domain.exceptions import PersistenceReadError
from thinkly_core.infrastructure.logging.logger import logger


@dataclass
class LoginResult:
    success: bool
    error: Optional[str] = None


class AuthGate:
    def __init__(self, storage: KeyValueStore, cfg=settings):
        self._storage = storage
        self._settings = cfg
        self._authenticated = False

    @property
    def is_authenticated(self) -> bool:
        return self._authenticated

    def rehydrate(self) -> None:
        try:
            token = self._storage.get(AUTH_TOKEN_KEY)
        except PersistenceReadError as e:
            logger.warning("Error loading auth token", extra={"extra": {"error": e.message}})
            token = None
        self._authenticated = bool(token)

    def login(self, username: str, password: str) -> LoginResult:
        expected_user = getattr(self._settings, "login_username", None)
        expected_password = getattr(self._settings, "login_password", None)
        if expected_user and username == expected_user and password == expected_password:
            token = f"auth-token-{int(time.time() * 1000)}"
            self._storage.set(AUTH_TOKEN_KEY, token)
            self._authenticated = True
            logger.info("Login succeeded", extra={"extra": {"username": username}})
            return LoginResult(success=True)
        logger.info("Login failed", extra={"extra": {"username": username}})
        return LoginResult(success=False, error="Invalid username or password.")

    def logout(self) -> None:
        self._storage.remove(AUTH_TOKEN_KEY)
        self._authenticated = False

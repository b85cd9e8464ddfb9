from thinkly_core.domain.conversation import DARK_MODE_KEY, KeyValueStore
from thinkly_core.domain.exceptions import PersistenceReadError
from thinkly_core.infrastructure.logging.logger import logger


class ThemePreference:
    """明暗主题开关，持久化在 darkMode 键（bool）。"""

    def __init__(self, storage: KeyValueStore):
        self._storage = storage
        self._dark = False

    @property
    def is_dark_mode(self) -> bool:
        return self._dark

    def rehydrate(self) -> None:
        try:
            value = self._storage.get(DARK_MODE_KEY)
        except PersistenceReadError as e:
            logger.warning("Error loading theme preference", extra={"extra": {"error": e.message}})
            value = None
        self._dark = value is True

    def toggle(self) -> bool:
        self.set_dark_mode(not self._dark)
        return self._dark

    def set_dark_mode(self, enabled: bool) -> None:
        self._storage.set(DARK_MODE_KEY, bool(enabled))
        self._dark = bool(enabled)

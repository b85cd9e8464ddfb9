import threading
import time
from typing import Callable

from thinkly_core.infrastructure.logging.logger import logger


class RateLimiter:
    """保证同一 Provider 两次请求之间至少间隔 min_interval 秒。

    只做等待，不排队也不重试；多线程调用时依次通过。
    """

    def __init__(
        self,
        min_interval: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        name: str = "",
    ):
        self.min_interval = min_interval
        self.name = name
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self.last_request_time: float | None = None

    def wait(self) -> float:
        """必要时阻塞，返回实际等待的秒数。"""
        with self._lock:
            waited = 0.0
            if self.last_request_time is not None:
                elapsed = self._clock() - self.last_request_time
                if elapsed < self.min_interval:
                    waited = self.min_interval - elapsed
                    logger.info(
                        "Rate limiting",
                        extra={"extra": {"provider": self.name, "wait_ms": round(waited * 1000)}},
                    )
                    self._sleep(waited)
            self.last_request_time = self._clock()
            return waited

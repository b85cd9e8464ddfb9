"""会话层。

- store: 消息历史与模型选择（SessionStore）。
- orchestrator: 一次用户发送到 Provider 回复的交换编排。
- auth / theme: 界面使用的登录门禁与主题偏好。
"""

from thinkly_core.session.orchestrator import ExchangeOrchestrator
from thinkly_core.session.store import SessionStore

__all__ = ["ExchangeOrchestrator", "SessionStore"]

"""ThinkLy 核心包。

该包提供 ThinkLy 聊天客户端的会话核心：配置加载、领域模型、
Gemini / Mistral Provider 适配、请求限速、本地持久化、
对话交换编排以及仪表盘统计。
"""

from thinkly_core.api.service import ChatService, create_chat_service

__all__ = ["ChatService", "create_chat_service"]

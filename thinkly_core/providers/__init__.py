"""LLM Provider 集成层。

该包下的模块负责：
- 定义 Provider 抽象接口 (base)。
- 维护 Provider 与模型配置 (registry)。
- 请求限速 (rate_limiter)。
- 提供各厂商的具体实现 (gemini_client、mistral_client)。
"""

from typing import Dict, Optional

from thinkly_core.config.settings import settings
from thinkly_core.domain.exceptions import InvalidModel
from thinkly_core.providers.base import ProviderClient
from thinkly_core.providers.gemini_client import GeminiClient
from thinkly_core.providers.mistral_client import MistralClient


def create_provider(name: Optional[str] = None) -> ProviderClient:
    """根据名称创建 Provider 实例，默认取配置中的模型。"""

    provider_name = (name or getattr(settings, "default_model", "gemini")).lower()
    if provider_name == "gemini":
        return GeminiClient(settings)
    if provider_name == "mistral":
        return MistralClient(settings)
    raise InvalidModel(code="INVALID_MODEL", message=f"Unknown model: {provider_name}")


def create_providers() -> Dict[str, ProviderClient]:
    """为每个可选模型各创建一个客户端（各自持有独立的限速器）。"""

    return {name: create_provider(name) for name in ("gemini", "mistral")}

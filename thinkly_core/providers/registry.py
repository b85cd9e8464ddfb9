"""Provider 与模型配置。

本模块集中维护两个 Provider 的固定生成参数与展示信息：

- ProviderConfig: 端点、默认模型 ID、生成参数。
- ModelInfo: 供模型选择器展示的名称与描述。

生成参数在各 Provider 之间保持一致（temperature 0.7，最多 1000 token），
Gemini 额外携带 topK/topP 与内容安全阈值。"""

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional


@dataclass
class ProviderConfig:
    """某个 Provider 的整体配置。"""

    name: str
    display_name: str
    description: str
    base_url: str
    model: str
    max_tokens: int = 1000
    temperature: float = 0.7
    top_k: Optional[int] = None
    top_p: Optional[float] = None
    safety_settings: List[Dict[str, str]] = field(default_factory=list)


@dataclass
class ModelInfo:
    """某个厂商模型的展示信息。"""

    id: str
    name: str
    description: str
    max_tokens: int


GEMINI_SAFETY_SETTINGS: List[Dict[str, str]] = [
    {"category": category, "threshold": "BLOCK_MEDIUM_AND_ABOVE"}
    for category in (
        "HARM_CATEGORY_HARASSMENT",
        "HARM_CATEGORY_HATE_SPEECH",
        "HARM_CATEGORY_SEXUALLY_EXPLICIT",
        "HARM_CATEGORY_DANGEROUS_CONTENT",
    )
]

GEMINI_CONFIG = ProviderConfig(
    name="gemini",
    display_name="Google Gemini",
    description="Fast, multimodal model from Google",
    base_url="https://generativelanguage.googleapis.com/v1beta",
    model="gemini-1.5-flash",
    max_tokens=1000,
    temperature=0.7,
    top_k=40,
    top_p=0.95,
    safety_settings=GEMINI_SAFETY_SETTINGS,
)

MISTRAL_CONFIG = ProviderConfig(
    name="mistral",
    display_name="Mistral",
    description="Open-weight models from Mistral AI",
    base_url="https://api.mistral.ai/v1",
    model="mistral-large-latest",
    max_tokens=1000,
    temperature=0.7,
)

PROVIDER_REGISTRY: Mapping[str, ProviderConfig] = {
    "gemini": GEMINI_CONFIG,
    "mistral": MISTRAL_CONFIG,
}

MISTRAL_MODELS: List[ModelInfo] = [
    ModelInfo(
        id="mistral-large-latest",
        name="Mistral Large",
        description="Most capable model for complex reasoning",
        max_tokens=32768,
    ),
    ModelInfo(
        id="mistral-medium-latest",
        name="Mistral Medium",
        description="Balanced performance and speed",
        max_tokens=32768,
    ),
    ModelInfo(
        id="mistral-small-latest",
        name="Mistral Small",
        description="Fast and efficient for simple tasks",
        max_tokens=32768,
    ),
]


def get_provider_config(name: str) -> ProviderConfig:
    """根据名称获取 ProviderConfig，名称不区分大小写。"""

    key = name.lower()
    for k, cfg in PROVIDER_REGISTRY.items():
        if k.lower() == key:
            return cfg
    raise KeyError(f"Unknown provider: {name!r}")


def list_providers() -> List[ProviderConfig]:
    return list(PROVIDER_REGISTRY.values())


def get_mistral_models() -> List[ModelInfo]:
    return list(MISTRAL_MODELS)

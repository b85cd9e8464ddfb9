"""统一的会话与结果数据模型。

本模块定义了 ThinkLy 在会话层与两个 Provider 之间共享的标准数据结构：

- Message: 会话中的一条消息（user/assistant/error），只追加、不修改。
- ChatTurn: 传给 Provider 的历史条目，只包含 role 与 content。
- TokenUsage: token 统计（可能是估算值）。
- ProviderSuccess / ProviderFailure: Provider 调用结果的判别联合，
  各适配器在边界处把厂商 JSON 归一化为这两种结构之一。
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Literal, Optional, Tuple, Union
from uuid import uuid4

from thinkly_core.domain.exceptions import ProviderError


# 会话消息角色（不建模 system 角色）
Role = Literal["user", "assistant", "error"]
ROLES: Tuple[str, ...] = ("user", "assistant", "error")

# 可选的 Provider 标识
ModelId = Literal["gemini", "mistral"]
SUPPORTED_MODELS: Tuple[str, ...] = ("gemini", "mistral")
DEFAULT_MODEL: ModelId = "gemini"


def format_timestamp(ts: datetime) -> str:
    return ts.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_timestamp(raw: str) -> datetime:
    return datetime.fromisoformat(str(raw).replace("Z", "+00:00"))


@dataclass
class TokenUsage:
    """token 统计。estimated=True 表示按字符长度估算，而非厂商返回。"""

    total_tokens: int
    prompt_tokens: Optional[int] = None
    completion_tokens: Optional[int] = None
    estimated: bool = False

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"total_tokens": self.total_tokens, "estimated": self.estimated}
        if self.prompt_tokens is not None:
            payload["prompt_tokens"] = self.prompt_tokens
        if self.completion_tokens is not None:
            payload["completion_tokens"] = self.completion_tokens
        return payload

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TokenUsage":
        return cls(
            total_tokens=int(data.get("total_tokens") or 0),
            prompt_tokens=data.get("prompt_tokens"),
            completion_tokens=data.get("completion_tokens"),
            estimated=bool(data.get("estimated", False)),
        )


@dataclass(frozen=True)
class Message:
    """会话中的一条消息。

    - id: 会话内唯一（m-<uuid>）。
    - content: 文本，可包含 ``` 代码块与 ` 行内代码。
    - role: user / assistant / error。
    - model: 创建时选中的 Provider，仅作展示/统计用途。
    - timestamp: 创建时间（UTC），创建后不再修改。
    - usage: 仅 assistant 消息可能携带。
    """

    content: str
    role: Role
    model: str
    id: str = field(default_factory=lambda: f"m-{uuid4().hex}")
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    usage: Optional[TokenUsage] = None

    def to_turn(self) -> "ChatTurn":
        return ChatTurn(role=self.role, content=self.content)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": self.id,
            "content": self.content,
            "role": self.role,
            "timestamp": format_timestamp(self.timestamp),
            "model": self.model,
        }
        if self.usage is not None:
            payload["usage"] = self.usage.to_dict()
        return payload

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Message":
        role = data["role"]
        if role not in ROLES:
            raise ValueError(f"Unknown message role: {role!r}")
        usage_raw = data.get("usage")
        return cls(
            id=str(data["id"]),
            content=data.get("content") or "",
            role=role,
            model=data.get("model") or "unknown",
            timestamp=parse_timestamp(data["timestamp"]),
            usage=TokenUsage.from_dict(usage_raw) if isinstance(usage_raw, dict) else None,
        )


@dataclass(frozen=True)
class ChatTurn:
    """传给 Provider 的一条历史记录。"""

    role: Role
    content: str


@dataclass
class ProviderSuccess:
    provider: str
    message: str
    usage: Optional[TokenUsage] = None
    raw: Optional[dict] = None

    @property
    def success(self) -> bool:
        return True


@dataclass
class ProviderFailure:
    provider: str
    error: ProviderError

    @property
    def success(self) -> bool:
        return False

    @property
    def message(self) -> str:
        return self.error.message


ProviderResult = Union[ProviderSuccess, ProviderFailure]

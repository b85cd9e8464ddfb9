"""会话统计，供仪表盘展示。

所有数字都只根据本地消息历史计算；token 总数按每 4 个字符 1 个 token 估算。
"""

import math
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

from thinkly_core.domain.models import Message

CODE_FENCE = "```"


@dataclass
class HourlyBucket:
    hour: str
    messages: int


@dataclass
class DashboardStats:
    total_messages: int = 0
    user_messages: int = 0
    assistant_messages: int = 0
    error_messages: int = 0
    total_tokens: int = 0
    average_response_time: float = 0.0
    model_usage: Dict[str, int] = field(default_factory=dict)
    message_types: Dict[str, int] = field(default_factory=dict)
    hourly_activity: List[HourlyBucket] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "totalMessages": self.total_messages,
            "userMessages": self.user_messages,
            "assistantMessages": self.assistant_messages,
            "errorMessages": self.error_messages,
            "totalTokens": self.total_tokens,
            "averageResponseTime": self.average_response_time,
            "modelUsage": dict(self.model_usage),
            "messageTypes": dict(self.message_types),
            "hourlyActivity": [{"hour": b.hour, "messages": b.messages} for b in self.hourly_activity],
        }


def estimate_tokens(text: str) -> int:
    return math.ceil(len(text) / 4)


def compute_dashboard_stats(messages: Sequence[Message], tz=None) -> DashboardStats:
    """根据消息历史计算仪表盘数据。

    tz 为按小时统计时使用的时区，默认使用本地时区。
    """

    roles = Counter(m.role for m in messages)
    model_usage = Counter(m.model or "unknown" for m in messages)

    message_types = {"text": 0, "code": 0, "error": roles["error"]}
    for m in messages:
        if CODE_FENCE in m.content:
            message_types["code"] += 1
        else:
            message_types["text"] += 1

    hours = Counter(_local_hour(m.timestamp, tz) for m in messages)
    hourly = [HourlyBucket(hour=f"{h}:00", messages=hours.get(h, 0)) for h in range(24)]

    return DashboardStats(
        total_messages=len(messages),
        user_messages=roles["user"],
        assistant_messages=roles["assistant"],
        error_messages=roles["error"],
        total_tokens=sum(estimate_tokens(m.content) for m in messages),
        average_response_time=average_response_time(messages),
        model_usage=dict(model_usage),
        message_types=message_types,
        hourly_activity=hourly,
    )


def average_response_time(messages: Sequence[Message]) -> float:
    """每条 user 消息到紧随其后的 assistant/error 消息的平均秒数。"""

    pairs: List[Tuple[datetime, datetime]] = []
    pending: Optional[datetime] = None
    for m in messages:
        if m.role == "user":
            pending = m.timestamp
        elif pending is not None:
            pairs.append((pending, m.timestamp))
            pending = None
    if not pairs:
        return 0.0
    total = sum(max((end - start).total_seconds(), 0.0) for start, end in pairs)
    return round(total / len(pairs), 2)


def _local_hour(ts: datetime, tz) -> int:
    return ts.astimezone(tz).hour

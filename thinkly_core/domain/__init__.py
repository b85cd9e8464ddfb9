"""领域层模型与协议。

包含：
- models: Message / ChatTurn / TokenUsage 以及 Provider 结果联合类型。
- conversation: 持久化键名与 KeyValueStore 抽象。
- exceptions: 业务异常类型定义。
"""

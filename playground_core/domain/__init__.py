"""领域层模型与协议。

包含：
- models: 统一的 UnifiedMessage / UnifiedConversation / FunctionCall 模型。
- conversation: 会话持久化能力 SessionStore 抽象。
- exceptions: 业务异常类型定义。
"""

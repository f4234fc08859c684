"""领域层模型与协议。

包含：
- models: Turn / ConversationSnapshot 以及 Provider 层的 ChatMessage / ChatRequest / ChatResult。
- conversation: 只追加的 ConversationStore 协议。
- exceptions: 业务异常类型定义。
"""

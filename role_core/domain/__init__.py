"""领域层模型与异常。

包含：
- models: ChatMessage / ConversationState / NormalizedResponse 等统一模型。
- exceptions: BusinessError 体系与 ErrorKind 错误分类。
"""

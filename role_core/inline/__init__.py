"""内联 <file_operation> 命令通道。

- parser: 块扫描与逐行状态机解析。
- processor: 分发到 sandbox 并把结果 / 错误标记替换回文本。
"""

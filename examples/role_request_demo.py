"""Minimal demonstration of a role request against the current directory."""

import asyncio
import os

from role_core import handle_role_request

if __name__ == "__main__":
    request = {
        "role": "summarizer",
        "prompt": "请阅读 README.md，并用三点总结这个项目的主要内容",
        "base_path": os.getcwd(),
        "related_files": ["README.md"],
        "format": "bullets",
    }
    result = asyncio.run(
        handle_role_request(request, on_progress=lambda i, r: print(f"[turn {i}] tool calls: {len(r.tool_calls)}"))
    )
    print("Role:", request["role"])
    print("Reply:", result["content"][0]["text"])

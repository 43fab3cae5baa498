"""提示词模板与角色提示词组装。

模板文本存放在 prompts/templates 目录下，按文件名读取。
"""

from pathlib import Path


PROMPTS_DIR = Path(__file__).resolve().parent


def load_template(name: str) -> str:
    """读取 templates/<name>.md 的文本内容。"""

    fname = PROMPTS_DIR / "templates" / f"{name}.md"
    return fname.read_text(encoding="utf-8")

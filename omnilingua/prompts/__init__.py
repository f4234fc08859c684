"""系统指令加载工具。

按语言(locale) 从 prompts/<locale> 目录读取多语言助手的系统指令，
作为会话句柄创建时的 systemInstruction。
"""

from pathlib import Path


PROMPTS_DIR = Path(__file__).resolve().parent


def load_system_prompt(locale: str = "en") -> str:
    """加载多语言助手的系统指令文本。

    指令语言只影响模型读到的规则描述，不影响回答语言：
    模型始终使用用户提问的语言作答。
    """

    fname = PROMPTS_DIR / locale / "multilingual_system.md"
    return fname.read_text(encoding="utf-8").strip()

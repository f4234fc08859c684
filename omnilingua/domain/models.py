"""统一的对话与结果数据模型。

本模块分两部分：

- 会话层：Turn / ConversationSnapshot，是展示层渲染的唯一数据来源。
- Provider 层：ChatMessage / ChatRequest / ChatResult / ChatStreamChunk，
  是会话句柄与具体 Provider（如 GeminiClient）之间的交换格式。

Provider 适配器只依赖 Provider 层模型，并负责在各自的 API JSON
和这些模型之间做转换。
"""

import time
from dataclasses import dataclass, field
from typing import Literal, Optional, Any, Dict, List, Tuple
from uuid import uuid4


# 会话角色（与 Gemini contents[].role 一致）
Role = Literal["user", "model"]


def _now_ms() -> int:
    return int(time.time() * 1000)


def _new_id() -> str:
    return f"m-{uuid4().hex}"


@dataclass(frozen=True)
class Turn:
    """会话中的一条消息。

    - id: 创建时分配的唯一标识，之后不会复用或修改。
    - role: "user" 或 "model"。
    - text: 消息文本。
    - timestamp: 创建时间（毫秒级 epoch）。
    - is_error: 仅在创建失败占位消息时为 True。
    """

    id: str
    role: Role
    text: str
    timestamp: int
    is_error: bool = False

    @classmethod
    def user(cls, text: str) -> "Turn":
        return cls(id=_new_id(), role="user", text=text, timestamp=_now_ms())

    @classmethod
    def model(cls, text: str) -> "Turn":
        return cls(id=_new_id(), role="model", text=text, timestamp=_now_ms())

    @classmethod
    def error(cls, text: str) -> "Turn":
        return cls(id=_new_id(), role="model", text=text, timestamp=_now_ms(), is_error=True)


@dataclass(frozen=True)
class ConversationSnapshot:
    """某一时刻的会话只读视图，供展示层渲染。

    loading_text 只在 busy 时出现，对应前端的“正在生成”提示。
    """

    turns: Tuple[Turn, ...]
    busy: bool
    loading_text: Optional[str] = None


@dataclass
class ChatMessage:
    """发给 Provider 的一条历史消息。"""

    role: Role
    content: str


@dataclass
class ChatRequest:
    """一次完整的 Provider 请求。

    会话句柄把系统指令与历史整理成 ChatRequest，再交给具体 ProviderClient。
    """

    provider: str  # 逻辑 Provider 名，如 "gemini"
    model: str  # 逻辑模型名，如 "multilingual-chat"（再由 registry 映射为真实模型名）
    messages: List[ChatMessage]
    system_instruction: Optional[str] = None
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    max_tokens: Optional[int] = None


@dataclass
class ChatUsage:
    """Provider 返回的 token 统计信息（统一格式）。"""

    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


@dataclass
class ChatResult:
    """一次对话调用的最终结果。

    text 为 None 表示远端成功返回但没有任何文本内容。
    """

    provider: str
    model: str
    text: Optional[str]
    finish_reason: Optional[str] = None
    usage: Optional[ChatUsage] = None
    raw: Optional[dict] = None


@dataclass
class ChatStreamChunk:
    """流式返回的一个增量。"""

    provider: str
    model: str
    text: str = ""
    finish_reason: Optional[str] = None
    usage: Optional[ChatUsage] = None
    raw: Optional[Dict[str, Any]] = field(default=None, repr=False)

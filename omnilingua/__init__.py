"""OmniLingua 顶层包。

单会话多语言聊天客户端的会话管理核心：
配置加载、领域模型、Gemini Provider 适配、远端会话网关、
回合控制与进程内会话存储。
"""

from omnilingua.agents.turn_controller import TurnController
from omnilingua.infrastructure.storage.memory_store import InMemoryConversationStore
from omnilingua.session.gateway import SessionGateway

__all__ = ["InMemoryConversationStore", "SessionGateway", "TurnController"]

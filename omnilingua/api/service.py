"""对外 API 服务模块。

展示层只通过这里读取会话状态、提交用户意图，不直接接触网关或存储。
"""

from typing import Any, Callable, Dict, Optional

from omnilingua.agents.turn_controller import TurnController
from omnilingua.config.settings import settings
from omnilingua.domain.conversation import SnapshotListener
from omnilingua.domain.models import ConversationSnapshot
from omnilingua.infrastructure.logging.logger import logger
from omnilingua.infrastructure.storage.memory_store import InMemoryConversationStore
from omnilingua.providers import create_provider
from omnilingua.session.gateway import SessionGateway


_controller: Optional[TurnController] = None
_store: Optional[InMemoryConversationStore] = None


def get_default_controller() -> TurnController:
    """获取默认的 TurnController 实例（单例）。

    首次调用时创建 Provider（缺少 API 密钥会直接抛出 ValidationError）
    并初始化远端会话与欢迎语。
    """
    global _controller
    if _controller is None:
        gateway = SessionGateway(provider_client=create_provider())
        gateway.initialize()
        _controller = TurnController(store=_get_store(), gateway=gateway)
        logger.info("Conversation service started", extra={"extra": {"provider": settings.default_provider}})
    return _controller


def _get_store() -> InMemoryConversationStore:
    global _store
    if _store is None:
        _store = InMemoryConversationStore(welcome_message=settings.welcome_message)
    return _store


async def submit_requested(text: str) -> bool:
    """展示层的发送意图（回车或点击发送）。

    Returns:
        提交被接受时为 True；空白输入或正在等待回复时为 False。
    """
    return await get_default_controller().submit(text)


def can_submit(text: str) -> bool:
    return get_default_controller().can_submit(text)


def get_conversation_state() -> Dict[str, Any]:
    """获取当前会话状态。

    Returns:
        包含 messages、is_loading、loading_text 的字典，messages 按追加顺序排列。
    """
    return snapshot_to_dict(_get_store().snapshot())


def subscribe(listener: SnapshotListener) -> Callable[[], None]:
    """注册会话变化监听器，返回取消订阅函数。"""
    return _get_store().subscribe(listener)


def reset_conversation() -> Dict[str, Any]:
    """重新开始会话，返回重置后的状态。"""
    get_default_controller().reset()
    return get_conversation_state()


def snapshot_to_dict(snapshot: ConversationSnapshot) -> Dict[str, Any]:
    return {
        "messages": [
            {
                "id": t.id,
                "role": t.role,
                "text": t.text,
                "timestamp": t.timestamp,
                "is_error": t.is_error,
            }
            for t in snapshot.turns
        ],
        "is_loading": snapshot.busy,
        "loading_text": snapshot.loading_text,
    }

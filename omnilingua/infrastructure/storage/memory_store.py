"""进程内会话存储。

会话历史不落盘，进程退出即丢失。
"""

from typing import Callable, List, Optional, Tuple

from omnilingua.config.settings import settings
from omnilingua.domain.conversation import ConversationStore, SnapshotListener
from omnilingua.domain.exceptions import ValidationError
from omnilingua.domain.models import ConversationSnapshot, Turn
from omnilingua.infrastructure.logging.logger import logger


LOADING_TEXT = "Thinking..."


class InMemoryConversationStore(ConversationStore):
    def __init__(self, welcome_message: Optional[str] = None):
        self._welcome_message = welcome_message or settings.welcome_message
        self._turns: List[Turn] = []
        self._busy = False
        self._listeners: List[SnapshotListener] = []
        self.initialize()

    @property
    def turns(self) -> Tuple[Turn, ...]:
        return tuple(self._turns)

    @property
    def busy(self) -> bool:
        return self._busy

    def initialize(self) -> None:
        """重置为只包含一条欢迎消息的会话。"""
        self._turns = [Turn.model(self._welcome_message)]
        self._notify()

    def append(self, turn: Turn) -> None:
        if not isinstance(turn, Turn):
            raise ValidationError(code="INVALID_TURN", message=f"expected Turn, got {type(turn).__name__}")
        self._turns.append(turn)
        self._notify()

    def set_busy(self, busy: bool) -> None:
        if self._busy == busy:
            return
        self._busy = busy
        self._notify()

    def snapshot(self) -> ConversationSnapshot:
        return ConversationSnapshot(
            turns=self.turns,
            busy=self._busy,
            loading_text=LOADING_TEXT if self._busy else None,
        )

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """注册快照监听器，返回取消订阅函数。"""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        if not self._listeners:
            return
        snap = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snap)
            except Exception:
                # 监听器属于展示层，其异常不能破坏会话状态
                logger.exception("Snapshot listener failed")

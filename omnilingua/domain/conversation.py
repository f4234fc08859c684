from typing import Callable, Protocol, Tuple

from .models import ConversationSnapshot, Turn


SnapshotListener = Callable[[ConversationSnapshot], None]


class ConversationStore(Protocol):
    """只追加的会话存储。

    没有删除或修改操作；busy 为只读属性，只能由 TurnController
    通过 set_busy 改写。
    """

    @property
    def turns(self) -> Tuple[Turn, ...]:
        ...

    @property
    def busy(self) -> bool:
        ...

    def initialize(self) -> None:
        ...

    def append(self, turn: Turn) -> None:
        ...

    def set_busy(self, busy: bool) -> None:
        ...

    def snapshot(self) -> ConversationSnapshot:
        ...

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        ...

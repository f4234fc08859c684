"""回合控制器。

编排一次用户交互：校验输入、追加用户消息、调用会话网关、
追加模型回复或错误占位消息，并维护控制新提交的 busy 标志。
"""

import logging
import time
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional
from uuid import uuid4

from omnilingua.config.settings import settings
from omnilingua.domain.conversation import ConversationStore
from omnilingua.domain.exceptions import ValidationError
from omnilingua.domain.models import Turn
from omnilingua.infrastructure.logging.logger import logger
from omnilingua.session.gateway import SessionGateway


ERROR_REPLY = "Sorry, something went wrong. Please try again."


class TurnController:
    def __init__(
        self,
        store: ConversationStore,
        gateway: SessionGateway,
        stream: Optional[bool] = None,
    ):
        self._store = store
        self._gateway = gateway
        self._stream = stream if stream is not None else getattr(settings, "stream_responses", False)
        self.draft = ""

    @property
    def busy(self) -> bool:
        return self._store.busy

    def update_draft(self, text: str) -> None:
        self.draft = text

    def can_submit(self, text: Optional[str] = None) -> bool:
        """展示层的发送按钮门控：有非空白内容且当前不忙。"""
        candidate = self.draft if text is None else text
        return bool(candidate.strip()) and not self._store.busy

    async def submit(self, raw_input: Optional[str] = None) -> bool:
        """提交一轮用户输入。

        Args:
            raw_input: 用户输入；为 None 时使用当前草稿。

        Returns:
            输入被接受时返回 True。空白输入或忙碌期间的提交静默忽略，返回 False。
        """
        text = (self.draft if raw_input is None else raw_input).strip()
        # 检查与置 busy 之间没有 await，单事件循环下即保证同一时刻至多一个在途请求
        if not text or self._store.busy:
            return False

        log_ctx: Dict[str, Any] = {"trace_id": f"tr-{uuid4().hex}"}
        start_time = time.time()
        self.draft = ""
        user_turn = Turn.user(text)
        self._store.append(user_turn)
        self._log(logging.INFO, "Stored user turn", log_ctx, turn_id=user_turn.id, chars=len(text))
        with self._busy_gate():
            outcome = await self._gateway.send_outcome(text, stream=self._stream)

            if outcome.ok:
                reply_turn = Turn.model(outcome.text or "")
            else:
                logger.error(
                    "Turn failed",
                    exc_info=outcome.error,
                    extra={"extra": {**log_ctx, "error_type": type(outcome.error).__name__}},
                )
                reply_turn = Turn.error(ERROR_REPLY)
            self._store.append(reply_turn)

        self._log(
            logging.INFO,
            "Completed turn",
            log_ctx,
            elapsed_seconds=round(time.time() - start_time, 2),
            user_turn_id=user_turn.id,
            reply_turn_id=reply_turn.id,
            is_error=reply_turn.is_error,
        )
        return True

    def reset(self) -> None:
        """丢弃远端上下文并把会话恢复为只有欢迎语的初始状态。"""
        if self._store.busy:
            raise ValidationError(code="BUSY", message="Cannot reset while a turn is in flight")
        self._gateway.reset()
        self._store.initialize()

    @contextmanager
    def _busy_gate(self) -> Iterator[None]:
        self._store.set_busy(True)
        try:
            yield
        finally:
            self._store.set_busy(False)

    @staticmethod
    def _log(level: int, message: str, log_ctx: Dict[str, Any], **fields: Any) -> None:
        payload = dict(log_ctx)
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})

"""会话网关。

独占唯一的远端会话句柄（ChatSession）：
- initialize/reset: 创建新句柄并替换旧句柄，旧句柄的远端上下文随之丢弃。
- send: 句柄不存在时先初始化，再把一轮文本发给远端并返回回复文本。
- send_outcome: send 的结果类型版本，供 TurnController 使用。

网关只负责记录并向上抛出远端错误，不做吞没或重试。
"""

import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

from omnilingua.config.settings import settings
from omnilingua.domain.exceptions import SessionUnavailableError
from omnilingua.infrastructure.logging.logger import logger
from omnilingua.prompts import load_system_prompt
from omnilingua.providers.base import ProviderClient
from omnilingua.session.chat_session import ChatSession


FALLBACK_REPLY = "I understood the request but could not generate a text response."


@dataclass
class SendOutcome:
    """一次发送的结果：text 与 error 恰有一个非空。"""

    text: Optional[str] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class SessionGateway:
    def __init__(
        self,
        provider_client: ProviderClient,
        model: Optional[str] = None,
        system_prompt_loader: Callable[[], str] = load_system_prompt,
        temperature: Optional[float] = None,
    ):
        self._provider_client = provider_client
        self._model = model or getattr(settings, "default_model", "multilingual-chat")
        self._system_prompt_loader = system_prompt_loader
        self._temperature = temperature if temperature is not None else getattr(settings, "temperature", None)
        self._session: Optional[ChatSession] = None

    @property
    def has_session(self) -> bool:
        return self._session is not None

    @property
    def session(self) -> Optional[ChatSession]:
        return self._session

    def initialize(self) -> None:
        """创建新的会话句柄，替换已有句柄。"""
        self._session = ChatSession(
            provider_client=self._provider_client,
            model=self._model,
            system_instruction=self._system_prompt_loader(),
            temperature=self._temperature,
        )
        self._log(logging.INFO, "Initialized chat session", provider=self._provider_client.name, model=self._model)

    def reset(self) -> None:
        discarded = len(self._session.history) if self._session else 0
        self._log(logging.INFO, "Resetting chat session", discarded_messages=discarded)
        self.initialize()

    async def send(self, text: str) -> str:
        session = self._ensure_session()
        try:
            result = await session.send_message(text)
        except Exception as e:
            self._log(logging.ERROR, "Remote call failed", error=str(e), error_type=type(e).__name__)
            raise
        if result.usage:
            self._log(
                logging.INFO,
                "Token usage",
                prompt_tokens=result.usage.prompt_tokens,
                completion_tokens=result.usage.completion_tokens,
                total_tokens=result.usage.total_tokens,
            )
        if not result.text:
            self._log(logging.WARNING, "Empty reply, using fallback", finish_reason=result.finish_reason)
            return FALLBACK_REPLY
        return result.text

    async def send_stream(self, text: str) -> AsyncIterator[str]:
        session = self._ensure_session()
        try:
            async for piece in session.send_message_stream(text):
                yield piece
        except Exception as e:
            self._log(logging.ERROR, "Remote stream failed", error=str(e), error_type=type(e).__name__)
            raise

    async def send_outcome(self, text: str, stream: bool = False) -> SendOutcome:
        """与 send 相同，但把任何异常折叠成 SendOutcome.error。"""
        try:
            if stream:
                pieces: List[str] = [piece async for piece in self.send_stream(text)]
                reply = "".join(pieces) or FALLBACK_REPLY
            else:
                reply = await self.send(text)
        except Exception as e:
            return SendOutcome(error=e)
        return SendOutcome(text=reply)

    def _ensure_session(self) -> ChatSession:
        if self._session is None:
            try:
                self.initialize()
            except Exception as e:
                raise SessionUnavailableError(code="SESSION_UNAVAILABLE", message=str(e)) from e
        if self._session is None:
            raise SessionUnavailableError(code="SESSION_UNAVAILABLE", message="Failed to initialize chat session.")
        return self._session

    @staticmethod
    def _log(level: int, message: str, **fields: Any) -> None:
        payload: Dict[str, Any] = {"component": "session_gateway"}
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})

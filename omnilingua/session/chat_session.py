"""远端会话句柄。

Gemini 的 generateContent 接口本身是无状态的，会话上下文由这里在
客户端维护：每次发送都带上系统指令与此前的全部历史。只有远端成功
回复后，这一轮的 user/model 消息才写入历史，失败的回合不会污染上下文。
"""

from typing import AsyncIterator, List, Optional

from omnilingua.domain.models import ChatMessage, ChatRequest, ChatResult
from omnilingua.providers.base import ProviderClient


class ChatSession:
    def __init__(
        self,
        provider_client: ProviderClient,
        model: str,
        system_instruction: str,
        temperature: Optional[float] = None,
    ):
        self._provider_client = provider_client
        self.model = model
        self.system_instruction = system_instruction
        self.temperature = temperature
        self._history: List[ChatMessage] = []

    @property
    def history(self) -> List[ChatMessage]:
        return list(self._history)

    def _request(self, text: str) -> ChatRequest:
        return ChatRequest(
            provider=self._provider_client.name,
            model=self.model,
            messages=[*self._history, ChatMessage(role="user", content=text)],
            system_instruction=self.system_instruction,
            temperature=self.temperature,
        )

    async def send_message(self, text: str) -> ChatResult:
        result = await self._provider_client.chat(self._request(text))
        self._record(text, result.text or "")
        return result

    async def send_message_stream(self, text: str) -> AsyncIterator[str]:
        """逐段产出回复文本；流正常结束后才记录本轮历史。"""
        pieces: List[str] = []
        async for chunk in self._provider_client.chat_stream(self._request(text)):
            if chunk.text:
                pieces.append(chunk.text)
                yield chunk.text
        self._record(text, "".join(pieces))

    def _record(self, text: str, reply: str) -> None:
        # 远端不接受空的 parts，没有文本的回合整轮丢弃以保持 user/model 交替
        if not reply:
            return
        self._history.append(ChatMessage(role="user", content=text))
        self._history.append(ChatMessage(role="model", content=reply))

"""远端会话句柄与会话网关。"""

from omnilingua.session.chat_session import ChatSession
from omnilingua.session.gateway import FALLBACK_REPLY, SendOutcome, SessionGateway

__all__ = ["ChatSession", "FALLBACK_REPLY", "SendOutcome", "SessionGateway"]

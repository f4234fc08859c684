"""LLM Provider 集成层。

该包下的模块负责：
- 定义 Provider 抽象接口 (base)。
- 维护 Provider 与模型配置 (registry)。
- 提供具体实现 (gemini_client)。
"""

from typing import Literal, Optional

from omnilingua.config.settings import settings
from omnilingua.domain.exceptions import ValidationError
from omnilingua.providers.base import ProviderClient
from omnilingua.providers.gemini_client import GeminiClient


def create_provider(name: Optional[str] = None) -> ProviderClient:
    """根据名称创建 Provider 实例，默认取配置中的 provider。

    缺少 API 密钥属于启动期致命错误，在这里直接抛出。
    """

    provider_name = (name or getattr(settings, "default_provider", "gemini")).lower()
    if provider_name != "gemini":
        raise ValidationError(code="UNKNOWN_PROVIDER", message=f"Unknown provider: {provider_name}")
    if not getattr(settings, "gemini_api_key", None):
        raise ValidationError(code="MISSING_API_KEY", message="GEMINI_API_KEY not set")
    return GeminiClient(settings)


DefaultProviderName = Literal["gemini"]

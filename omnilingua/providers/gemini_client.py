"""Gemini Provider 适配器。

使用 Gemini REST 接口（v1beta）：
- 非流式: POST {base_url}/models/{model}:generateContent
- 流式:   POST {base_url}/models/{model}:streamGenerateContent?alt=sse
- 认证:   x-goog-api-key: <api_key>

本实现只依赖公共字段：systemInstruction/contents/generationConfig，
响应中只读取 candidates[0].content.parts[].text 与 usageMetadata。
"""

import json
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx

from omnilingua.config.settings import settings
from omnilingua.domain.exceptions import ApiError, NetworkError, RateLimitError, ValidationError
from omnilingua.domain.models import (
    ChatMessage,
    ChatRequest,
    ChatResult,
    ChatStreamChunk,
    ChatUsage,
)
from omnilingua.providers.registry import GEMINI_CONFIG, ModelConfig, resolve_model


class GeminiClient:
    """Gemini Provider 客户端实现。"""

    name = "gemini"

    def __init__(self, cfg=settings):
        self._settings = cfg

    # ---- 非流式 ----

    async def chat(self, req: ChatRequest) -> ChatResult:
        model_cfg = resolve_model(GEMINI_CONFIG, req.model)
        payload = self._build_payload(req, model_cfg)
        url = f"{self._base_url()}/models/{model_cfg.provider_model}:generateContent"
        try:
            async with httpx.AsyncClient(timeout=self._timeout(), trust_env=False) as client:
                resp = await client.post(url, json=payload, headers=self._headers())
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message=str(e), provider=self.name)
        if resp.status_code == 429:
            raise RateLimitError(code="RATE_LIMIT", message="Gemini rate limit", http_status=429)
        if resp.status_code >= 400:
            raise ApiError(code="API_ERROR", message=resp.text, http_status=resp.status_code)
        try:
            data = resp.json()
        except ValueError as e:
            raise ApiError(code="INVALID_RESPONSE", message=str(e), http_status=resp.status_code)
        return self._parse_response(self._require_mapping(data, resp.status_code), req)

    # ---- 流式 ----

    async def chat_stream(self, req: ChatRequest) -> AsyncIterator[ChatStreamChunk]:
        model_cfg = resolve_model(GEMINI_CONFIG, req.model)
        payload = self._build_payload(req, model_cfg)
        url = f"{self._base_url()}/models/{model_cfg.provider_model}:streamGenerateContent"
        try:
            async with httpx.AsyncClient(timeout=self._timeout(), trust_env=False) as client:
                async with client.stream(
                    "POST",
                    url,
                    params={"alt": "sse"},
                    json=payload,
                    headers=self._headers(),
                ) as resp:
                    if resp.status_code == 429:
                        raise RateLimitError(code="RATE_LIMIT", message="Gemini rate limit", http_status=429)
                    if resp.status_code >= 400:
                        body = await resp.aread()
                        raise ApiError(
                            code="API_ERROR",
                            message=body.decode("utf-8", errors="replace"),
                            http_status=resp.status_code,
                        )
                    async for line in resp.aiter_lines():
                        if not line or line.startswith(":"):
                            continue
                        data_str = line
                        if data_str.startswith("data:"):
                            data_str = data_str[5:].strip()
                        else:
                            data_str = data_str.strip()
                        if not data_str or data_str == "[DONE]":
                            continue
                        try:
                            payload_chunk = json.loads(data_str)
                        except json.JSONDecodeError as e:
                            raise ApiError(code="INVALID_RESPONSE", message=str(e), http_status=resp.status_code)
                        yield self._parse_stream_chunk(self._require_mapping(payload_chunk, resp.status_code), req)
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message=str(e), provider=self.name)

    # ---- 辅助方法 ----

    def _base_url(self) -> str:
        base = getattr(self._settings, "gemini_base_url", None) or GEMINI_CONFIG.base_url
        return base.rstrip("/")

    def _timeout(self) -> Optional[float]:
        timeout = getattr(self._settings, "http_timeout", None)
        return timeout or None

    def _headers(self) -> Dict[str, str]:
        api_key = getattr(self._settings, "gemini_api_key", None)
        if not api_key:
            raise ValidationError(code="MISSING_API_KEY", message="GEMINI_API_KEY not set")
        return {
            "x-goog-api-key": api_key,
            "Content-Type": "application/json",
        }

    def _build_payload(self, req: ChatRequest, model_cfg: ModelConfig) -> dict:
        payload: Dict[str, Any] = {
            "contents": [self._message_to_payload(m) for m in req.messages],
        }
        if req.system_instruction:
            payload["systemInstruction"] = {"parts": [{"text": req.system_instruction}]}
        generation: Dict[str, Any] = {}
        temperature = req.temperature if req.temperature is not None else model_cfg.default_temperature
        if temperature is not None:
            generation["temperature"] = temperature
        if req.top_p is not None:
            generation["topP"] = req.top_p
        max_tokens = req.max_tokens or model_cfg.max_tokens
        if max_tokens:
            generation["maxOutputTokens"] = max_tokens
        if generation:
            payload["generationConfig"] = generation
        return payload

    @staticmethod
    def _message_to_payload(message: ChatMessage) -> Dict[str, Any]:
        return {"role": message.role, "parts": [{"text": message.content}]}

    def _parse_response(self, data: dict, req: ChatRequest) -> ChatResult:
        candidate = self._first_candidate(data)
        text = self._candidate_text(candidate)
        return ChatResult(
            provider=self.name,
            model=req.model,
            text=text or None,
            finish_reason=candidate.get("finishReason"),
            usage=self._parse_usage(data),
            raw=data,
        )

    def _parse_stream_chunk(self, data: dict, req: ChatRequest) -> ChatStreamChunk:
        candidate = self._first_candidate(data)
        return ChatStreamChunk(
            provider=self.name,
            model=req.model,
            text=self._candidate_text(candidate),
            finish_reason=candidate.get("finishReason"),
            usage=self._parse_usage(data),
            raw=data,
        )

    @staticmethod
    def _require_mapping(data: Any, status_code: int) -> dict:
        if not isinstance(data, dict):
            raise ApiError(
                code="INVALID_RESPONSE",
                message=f"expected JSON object, got {type(data).__name__}",
                http_status=status_code,
            )
        return data

    @staticmethod
    def _first_candidate(data: dict) -> Dict[str, Any]:
        candidates = data.get("candidates") or []
        return candidates[0] if candidates else {}

    @staticmethod
    def _candidate_text(candidate: Dict[str, Any]) -> str:
        parts: List[Dict[str, Any]] = (candidate.get("content") or {}).get("parts") or []
        # thought 部分是模型的内部推理，不属于回复正文
        return "".join(p.get("text") or "" for p in parts if not p.get("thought"))

    @staticmethod
    def _parse_usage(data: dict) -> Optional[ChatUsage]:
        usage_raw = data.get("usageMetadata") or {}
        if not usage_raw:
            return None
        return ChatUsage(
            prompt_tokens=usage_raw.get("promptTokenCount", 0),
            completion_tokens=usage_raw.get("candidatesTokenCount", 0),
            total_tokens=usage_raw.get("totalTokenCount", 0),
        )

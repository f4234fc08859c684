import json

import httpx
import pytest

from omnilingua.domain.exceptions import ApiError, NetworkError, RateLimitError, RemoteError, ValidationError
from omnilingua.domain.models import ChatMessage, ChatRequest
from omnilingua.providers.gemini_client import GeminiClient
from omnilingua.session.gateway import SessionGateway


class SettingsStub:
    gemini_api_key = "g-0123456789"
    http_timeout = 1.0
    gemini_base_url = "https://generativelanguage.googleapis.com/v1beta"


def _request():
    return ChatRequest(
        provider="gemini",
        model="multilingual-chat",
        messages=[ChatMessage(role="user", content="hi")],
        system_instruction="be nice",
    )


def _fake_client(resp=None, captured=None, stream_lines=None, raise_on_post=None):
    class Client:
        def __init__(self, *a, **kw):
            if captured is not None:
                captured["client_kwargs"] = kw

        async def __aenter__(self):
            return self

        async def __aexit__(self, *a):
            return False

        async def post(self, url, **kw):
            if raise_on_post is not None:
                raise raise_on_post
            if captured is not None:
                captured["url"] = url
                captured.update(kw)
            return resp

        def stream(self, method, url, **kw):
            if captured is not None:
                captured["url"] = url
                captured.update(kw)
            return StreamContext(resp or FakeStreamResponse(stream_lines or []))

    return Client


class Resp:
    def __init__(self, status_code=200, data=None, text=""):
        self.status_code = status_code
        self._data = data or {}
        self.text = text

    def json(self):
        if self.text:
            return json.loads(self.text)
        return self._data


class FakeStreamResponse:
    def __init__(self, lines, status_code=200, body=b""):
        self.status_code = status_code
        self._lines = list(lines)
        self._body = body

    async def aiter_lines(self):
        for line in self._lines:
            yield line

    async def aread(self):
        return self._body


class StreamContext:
    def __init__(self, response):
        self._response = response

    async def __aenter__(self):
        return self._response

    async def __aexit__(self, *args):
        return False


@pytest.mark.asyncio
async def test_gemini_client_basic(monkeypatch):
    data = {
        "candidates": [
            {"content": {"role": "model", "parts": [{"text": "Hel"}, {"text": "lo"}]}, "finishReason": "STOP"}
        ],
        "usageMetadata": {"promptTokenCount": 3, "candidatesTokenCount": 2, "totalTokenCount": 5},
    }
    captured = {}
    monkeypatch.setattr("httpx.AsyncClient", _fake_client(Resp(data=data), captured))

    res = await GeminiClient(SettingsStub()).chat(_request())

    assert res.text == "Hello"
    assert res.finish_reason == "STOP"
    assert res.usage.total_tokens == 5
    assert captured["url"].endswith("/models/gemini-2.5-flash:generateContent")
    assert captured["headers"]["x-goog-api-key"] == "g-0123456789"
    assert captured["json"]["systemInstruction"] == {"parts": [{"text": "be nice"}]}
    assert captured["json"]["contents"] == [{"role": "user", "parts": [{"text": "hi"}]}]


@pytest.mark.asyncio
async def test_gemini_client_no_text_returns_none(monkeypatch):
    data = {"candidates": [{"content": {"parts": []}, "finishReason": "SAFETY"}]}
    monkeypatch.setattr("httpx.AsyncClient", _fake_client(Resp(data=data)))

    res = await GeminiClient(SettingsStub()).chat(_request())

    assert res.text is None
    assert res.finish_reason == "SAFETY"


@pytest.mark.asyncio
async def test_gemini_client_skips_thought_parts(monkeypatch):
    data = {"candidates": [{"content": {"parts": [{"text": "hmm", "thought": True}, {"text": "answer"}]}}]}
    monkeypatch.setattr("httpx.AsyncClient", _fake_client(Resp(data=data)))

    res = await GeminiClient(SettingsStub()).chat(_request())

    assert res.text == "answer"


@pytest.mark.parametrize(
    "status, exc_type",
    [(429, RateLimitError), (500, ApiError), (400, ApiError)],
)
@pytest.mark.asyncio
async def test_gemini_client_http_errors(monkeypatch, status, exc_type):
    monkeypatch.setattr("httpx.AsyncClient", _fake_client(Resp(status_code=status, text="boom")))

    with pytest.raises(exc_type) as info:
        await GeminiClient(SettingsStub()).chat(_request())
    assert isinstance(info.value, RemoteError)
    assert info.value.http_status == status


@pytest.mark.asyncio
async def test_gemini_client_network_error(monkeypatch):
    monkeypatch.setattr(
        "httpx.AsyncClient",
        _fake_client(raise_on_post=httpx.ConnectError("connection refused")),
    )

    with pytest.raises(NetworkError):
        await GeminiClient(SettingsStub()).chat(_request())


@pytest.mark.asyncio
async def test_gemini_client_missing_key(monkeypatch):
    class NoKey(SettingsStub):
        gemini_api_key = None

    monkeypatch.setattr("httpx.AsyncClient", _fake_client(Resp()))

    with pytest.raises(ValidationError) as info:
        await GeminiClient(NoKey()).chat(_request())
    assert info.value.code == "MISSING_API_KEY"


@pytest.mark.asyncio
async def test_gemini_client_zero_timeout_disables_timeout(monkeypatch):
    class NoTimeout(SettingsStub):
        http_timeout = 0.0

    captured = {}
    data = {"candidates": [{"content": {"parts": [{"text": "ok"}]}}]}
    monkeypatch.setattr("httpx.AsyncClient", _fake_client(Resp(data=data), captured))

    await GeminiClient(NoTimeout()).chat(_request())

    assert captured["client_kwargs"]["timeout"] is None


@pytest.mark.asyncio
async def test_gemini_client_stream(monkeypatch):
    stream_lines = [
        'data: {"candidates": [{"content": {"parts": [{"text": "a"}]}}]}',
        "",
        ": keep-alive",
        'data: {"candidates": [{"content": {"parts": [{"text": "b"}]}, "finishReason": "STOP"}], '
        '"usageMetadata": {"promptTokenCount": 1, "candidatesTokenCount": 2, "totalTokenCount": 3}}',
    ]
    captured = {}
    monkeypatch.setattr("httpx.AsyncClient", _fake_client(captured=captured, stream_lines=stream_lines))

    async def collect():
        return [chunk async for chunk in GeminiClient(SettingsStub()).chat_stream(_request())]

    chunks = await collect()

    assert [c.text for c in chunks] == ["a", "b"]
    assert chunks[-1].finish_reason == "STOP"
    assert chunks[-1].usage.total_tokens == 3
    assert captured["url"].endswith(":streamGenerateContent")
    assert captured["params"] == {"alt": "sse"}


@pytest.mark.asyncio
async def test_gemini_client_stream_error(monkeypatch):
    resp = FakeStreamResponse([], status_code=503, body=b"unavailable")
    monkeypatch.setattr("httpx.AsyncClient", _fake_client(resp=resp))

    async def collect():
        return [chunk async for chunk in GeminiClient(SettingsStub()).chat_stream(_request())]

    with pytest.raises(ApiError) as info:
        await collect()
    assert info.value.message == "unavailable"


@pytest.mark.asyncio
async def test_gemini_client_non_json_body_is_remote_error(monkeypatch):
    monkeypatch.setattr("httpx.AsyncClient", _fake_client(Resp(status_code=200, text="<html>proxy</html>")))
    gw = SessionGateway(provider_client=GeminiClient(SettingsStub()), system_prompt_loader=lambda: "sys")

    with pytest.raises(RemoteError) as info:
        await gw.send("hi")
    assert isinstance(info.value, ApiError)
    assert info.value.code == "INVALID_RESPONSE"
    assert info.value.http_status == 200


@pytest.mark.asyncio
async def test_gemini_client_non_object_json_is_remote_error(monkeypatch):
    monkeypatch.setattr("httpx.AsyncClient", _fake_client(Resp(status_code=200, text='["not", "an", "object"]')))

    with pytest.raises(ApiError) as info:
        await GeminiClient(SettingsStub()).chat(_request())
    assert info.value.code == "INVALID_RESPONSE"


@pytest.mark.asyncio
async def test_gemini_client_stream_undecodable_line_is_remote_error(monkeypatch):
    stream_lines = [
        'data: {"candidates": [{"content": {"parts": [{"text": "a"}]}}]}',
        "data: <html>proxy</html>",
    ]
    monkeypatch.setattr("httpx.AsyncClient", _fake_client(stream_lines=stream_lines))
    received = []

    with pytest.raises(ApiError) as info:
        async for chunk in GeminiClient(SettingsStub()).chat_stream(_request()):
            received.append(chunk.text)
    assert info.value.code == "INVALID_RESPONSE"
    assert received == ["a"]

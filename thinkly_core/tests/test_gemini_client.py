import httpx
import pytest

from thinkly_core.domain.exceptions import (
    BadRequest,
    InvalidInput,
    MalformedResponse,
    NetworkError,
    RateLimited,
    ServerError,
    Unauthorized,
)
from thinkly_core.domain.models import ChatTurn
from thinkly_core.providers.gemini_client import GeminiClient
from thinkly_core.providers.rate_limiter import RateLimiter


class SettingsStub:
    gemini_api_key = "g-test-key"
    gemini_base_url = "https://generativelanguage.googleapis.com/v1beta"
    gemini_model = "gemini-1.5-flash"
    http_timeout = 1.0
    min_request_interval = 0.0


def _ok_body(text="Hi there!", usage=None):
    body = {"candidates": [{"content": {"role": "model", "parts": [{"text": text}]}}]}
    if usage is not None:
        body["usageMetadata"] = usage
    return body


def _install_client(monkeypatch, status_code=200, body=None, captured=None, exc=None):
    class Resp:
        def __init__(self):
            self.status_code = status_code

        def json(self):
            if isinstance(body, Exception):
                raise body
            return body

    class Client:
        def __init__(self, *a, **kw):
            if captured is not None:
                captured["timeout"] = kw.get("timeout")

        def __enter__(self):
            return self

        def __exit__(self, *a):
            return False

        def post(self, url, params=None, json=None, **_):
            if captured is not None:
                captured.setdefault("calls", 0)
                captured["calls"] += 1
                captured["url"] = url
                captured["params"] = params
                captured["payload"] = json
            if exc is not None:
                raise exc
            return Resp()

    monkeypatch.setattr("httpx.Client", Client)


def test_gemini_client_basic(monkeypatch):
    gc = GeminiClient(SettingsStub())
    _install_client(monkeypatch, body=_ok_body(usage={"promptTokenCount": 3, "candidatesTokenCount": 4, "totalTokenCount": 7}))
    res = gc.chat("Hello", [])
    assert res.success
    assert res.message == "Hi there!"
    assert res.usage.total_tokens == 7
    assert res.usage.estimated is False


def test_gemini_payload_mapping(monkeypatch):
    captured = {}
    gc = GeminiClient(SettingsStub())
    _install_client(monkeypatch, body=_ok_body(), captured=captured)
    history = [
        ChatTurn(role="user", content="hi"),
        ChatTurn(role="assistant", content="hello"),
        ChatTurn(role="error", content="Error: Network error."),
    ]
    gc.chat("  next question  ", history)

    payload = captured["payload"]
    assert [c["role"] for c in payload["contents"]] == ["user", "model", "user"]
    assert payload["contents"][-1]["parts"][0]["text"] == "next question"
    assert payload["generationConfig"] == {"temperature": 0.7, "topK": 40, "topP": 0.95, "maxOutputTokens": 1000}
    assert {s["category"] for s in payload["safetySettings"]} == {
        "HARM_CATEGORY_HARASSMENT",
        "HARM_CATEGORY_HATE_SPEECH",
        "HARM_CATEGORY_SEXUALLY_EXPLICIT",
        "HARM_CATEGORY_DANGEROUS_CONTENT",
    }
    assert all(s["threshold"] == "BLOCK_MEDIUM_AND_ABOVE" for s in payload["safetySettings"])
    assert captured["params"] == {"key": "g-test-key"}
    assert captured["url"].endswith("/models/gemini-1.5-flash:generateContent")
    assert captured["timeout"] == 1.0


def test_gemini_usage_falls_back_to_length(monkeypatch):
    gc = GeminiClient(SettingsStub())
    _install_client(monkeypatch, body=_ok_body(text="abcdef"))
    res = gc.chat("Hello", [])
    assert res.usage.total_tokens == 6
    assert res.usage.estimated is True


def test_gemini_zero_token_count_is_kept(monkeypatch):
    gc = GeminiClient(SettingsStub())
    _install_client(monkeypatch, body=_ok_body(text="abcdef", usage={"totalTokenCount": 0}))
    res = gc.chat("Hello", [])
    assert res.usage.total_tokens == 0
    assert res.usage.estimated is False


@pytest.mark.parametrize(
    "usage",
    [
        {"totalTokenCount": None},
        {"totalTokenCount": "12"},
        ["bad"],
        "12",
    ],
)
def test_gemini_malformed_usage_falls_back(monkeypatch, usage):
    gc = GeminiClient(SettingsStub())
    _install_client(monkeypatch, body=_ok_body(text="abcdef", usage=usage))
    res = gc.send("Hello", [])
    assert res.success is True
    assert res.usage.total_tokens == 6
    assert res.usage.estimated is True


@pytest.mark.parametrize(
    "status,exc_type,message",
    [
        (400, BadRequest, "Invalid request to Gemini API. Please check your input."),
        (401, Unauthorized, "Invalid API key. Please check your Gemini API key."),
        (403, Unauthorized, "Invalid API key. Please check your Gemini API key."),
        (429, RateLimited, "Rate limit exceeded. Please wait a moment and try again."),
        (500, ServerError, "Gemini server error. Please try again later."),
        (503, ServerError, "Gemini server error. Please try again later."),
        (404, BadRequest, "models/foo is not found"),
    ],
)
def test_gemini_http_errors(monkeypatch, status, exc_type, message):
    gc = GeminiClient(SettingsStub())
    _install_client(monkeypatch, status_code=status, body={"error": {"code": status, "message": "models/foo is not found"}})
    with pytest.raises(exc_type) as info:
        gc.chat("Hello", [])
    assert info.value.message == message
    assert info.value.http_status == status
    assert info.value.provider == "gemini"


def test_gemini_network_error(monkeypatch):
    gc = GeminiClient(SettingsStub())
    _install_client(monkeypatch, exc=httpx.ConnectError("connection refused"))
    with pytest.raises(NetworkError) as info:
        gc.chat("Hello", [])
    assert info.value.message == "Network error. Please check your internet connection."


def test_gemini_timeout_is_network_error(monkeypatch):
    gc = GeminiClient(SettingsStub())
    _install_client(monkeypatch, exc=httpx.ReadTimeout("timed out"))
    result = gc.send("Hello", [])
    assert result.success is False
    assert isinstance(result.error, NetworkError)


@pytest.mark.parametrize(
    "body",
    [
        {"candidates": []},
        {"candidates": [{"finishReason": "SAFETY"}]},
        {"candidates": [{"content": {"parts": [{"text": ""}]}}]},
        ["not", "an", "object"],
        ValueError("not json"),
    ],
)
def test_gemini_malformed_response(monkeypatch, body):
    gc = GeminiClient(SettingsStub())
    _install_client(monkeypatch, body=body)
    result = gc.send("Hello", [])
    assert result.success is False
    assert isinstance(result.error, MalformedResponse)
    assert result.message == "Invalid response format from Gemini API"


def test_gemini_missing_key_makes_no_call(monkeypatch):
    class NoKey(SettingsStub):
        gemini_api_key = None

    captured = {}
    gc = GeminiClient(NoKey())
    _install_client(monkeypatch, body=_ok_body(), captured=captured)
    with pytest.raises(Unauthorized) as info:
        gc.chat("Hello", [])
    assert info.value.code == "MISSING_API_KEY"
    assert "calls" not in captured


def test_gemini_rejects_empty_message(monkeypatch):
    gc = GeminiClient(SettingsStub())
    with pytest.raises(InvalidInput):
        gc.chat("   ", [])


def test_gemini_consecutive_sends_are_paced(monkeypatch):
    class Clock:
        now = 0.0

        def __call__(self):
            return self.now

        def sleep(self, seconds):
            self.now += seconds

    clock = Clock()
    dispatched = []

    class Resp:
        status_code = 200

        def json(self):
            return _ok_body()

    class Client:
        def __init__(self, *a, **kw):
            pass

        def __enter__(self):
            return self

        def __exit__(self, *a):
            return False

        def post(self, *a, **kw):
            dispatched.append(clock.now)
            clock.now += 0.2  # 网络耗时
            return Resp()

    monkeypatch.setattr("httpx.Client", Client)
    gc = GeminiClient(SettingsStub(), rate_limiter=RateLimiter(min_interval=1.0, clock=clock, sleep=clock.sleep))
    gc.chat("first", [])
    clock.now += 0.1
    gc.chat("second", [])
    assert len(dispatched) == 2
    assert dispatched[1] - dispatched[0] >= 1.0 - 1e-9


def test_gemini_validate_api_key(monkeypatch):
    gc = GeminiClient(SettingsStub())
    _install_client(monkeypatch, body=_ok_body())
    assert gc.validate_api_key().valid is True

    _install_client(monkeypatch, status_code=401, body={})
    status = gc.validate_api_key()
    assert status.valid is False
    assert status.error == "Invalid API key"

    _install_client(monkeypatch, status_code=500, body={})
    assert gc.validate_api_key().error == "Unable to validate API key"

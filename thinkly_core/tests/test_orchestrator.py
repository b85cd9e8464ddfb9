import pytest

from thinkly_core.domain.exceptions import InvalidInput, NetworkError, Unauthorized
from thinkly_core.domain.models import ProviderFailure, ProviderSuccess, TokenUsage
from thinkly_core.infrastructure.storage.json_store import JsonKeyValueStore
from thinkly_core.session.orchestrator import ExchangeOrchestrator
from thinkly_core.session.store import SessionStore


class FakeProvider:
    def __init__(self, name, results=None):
        self.name = name
        self.results = list(results or [])
        self.calls = []
        self.on_send = None

    def send(self, message, history):
        self.calls.append((message, list(history)))
        if self.on_send:
            self.on_send()
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture
def store(tmp_path):
    s = SessionStore(JsonKeyValueStore(root=tmp_path))
    s.rehydrate()
    return s


def _ok(text, usage=None):
    return ProviderSuccess(provider="gemini", message=text, usage=usage)


def test_successful_exchange(store):
    gemini = FakeProvider("gemini", [_ok("Hi there!", TokenUsage(total_tokens=9, estimated=True))])
    orch = ExchangeOrchestrator(store, {"gemini": gemini, "mistral": FakeProvider("mistral")})

    reply = orch.send("Hello")

    assert gemini.calls == [("Hello", [])]
    user, assistant = store.messages
    assert (user.content, user.role, user.model) == ("Hello", "user", "gemini")
    assert (assistant.content, assistant.role, assistant.model) == ("Hi there!", "assistant", "gemini")
    assert assistant.usage.total_tokens == 9
    assert reply == assistant
    assert store.busy is False
    assert store.last_error == ""


def test_unauthorized_becomes_error_message(store):
    err = Unauthorized(code="UNAUTHORIZED", message="Invalid API key. Please check your Gemini API key.")
    gemini = FakeProvider("gemini", [ProviderFailure(provider="gemini", error=err)])
    orch = ExchangeOrchestrator(store, {"gemini": gemini})

    reply = orch.send("Hello")

    expected = "Error: Invalid API key. Please check your Gemini API key."
    assert reply.role == "error"
    assert reply.content == expected
    assert store.last_error == expected
    assert [m.role for m in store.messages] == ["user", "error"]
    assert store.busy is False


def test_raised_provider_error_is_surfaced(store):
    gemini = FakeProvider("gemini", [NetworkError(code="NETWORK_ERROR", message="Network error. Please check your internet connection.")])
    orch = ExchangeOrchestrator(store, {"gemini": gemini})
    reply = orch.send("Hello")
    assert reply.content == "Error: Network error. Please check your internet connection."
    assert store.busy is False


def test_failed_exchange_is_not_retried(store):
    err = Unauthorized(code="UNAUTHORIZED", message="nope")
    gemini = FakeProvider("gemini", [ProviderFailure(provider="gemini", error=err), _ok("fine")])
    orch = ExchangeOrchestrator(store, {"gemini": gemini})
    orch.send("one")
    assert len(gemini.calls) == 1
    orch.send("two")
    assert store.last_error == ""
    assert [m.role for m in store.messages] == ["user", "error", "user", "assistant"]


def test_empty_input_rejected_before_append(store):
    gemini = FakeProvider("gemini")
    orch = ExchangeOrchestrator(store, {"gemini": gemini})
    with pytest.raises(InvalidInput):
        orch.send("   \n")
    assert store.messages == ()
    assert gemini.calls == []


def test_send_while_busy_is_ignored(store):
    gemini = FakeProvider("gemini", [_ok("x")])
    orch = ExchangeOrchestrator(store, {"gemini": gemini})
    store.mark_busy()
    assert orch.send("Hello") is None
    assert store.messages == ()
    assert gemini.calls == []


def test_reentrant_send_during_exchange_is_ignored(store):
    gemini = FakeProvider("gemini", [_ok("first"), _ok("second")])
    orch = ExchangeOrchestrator(store, {"gemini": gemini})
    nested = []
    gemini.on_send = lambda: nested.append(orch.send("again"))

    orch.send("Hello")

    assert nested == [None]
    assert len(gemini.calls) == 1
    assert [m.content for m in store.messages] == ["Hello", "first"]


def test_history_snapshot_excludes_current_message(store):
    gemini = FakeProvider("gemini", [_ok("a1"), _ok("a2")])
    orch = ExchangeOrchestrator(store, {"gemini": gemini})
    orch.send("q1")
    orch.send("  q2  ")
    message, history = gemini.calls[1]
    assert message == "q2"
    assert [(t.role, t.content) for t in history] == [("user", "q1"), ("assistant", "a1")]


def test_switching_model_only_tags_future_messages(store):
    gemini = FakeProvider("gemini", [_ok("from gemini")])
    mistral = FakeProvider("mistral", [ProviderSuccess(provider="mistral", message="from mistral")])
    orch = ExchangeOrchestrator(store, {"gemini": gemini, "mistral": mistral})

    orch.send("first")
    store.select_model("mistral")
    orch.send("second")

    assert [m.model for m in store.messages] == ["gemini", "gemini", "mistral", "mistral"]
    assert len(gemini.calls) == 1
    assert len(mistral.calls) == 1
    _, history = mistral.calls[0]
    assert [t.content for t in history] == ["first", "from gemini"]


def test_clear_during_exchange_is_refused(store):
    gemini = FakeProvider("gemini", [_ok("late reply")])
    orch = ExchangeOrchestrator(store, {"gemini": gemini})
    cleared = []
    gemini.on_send = lambda: cleared.append(store.clear())

    orch.send("Hello")

    assert cleared == [False]
    assert [m.role for m in store.messages] == ["user", "assistant"]
    assert store.clear() is True
    assert store.messages == ()

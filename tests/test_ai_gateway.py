"""
LLM gateway tests.

Tests cover:
  - Provider chain order from ai_providers priority
  - Retries on one provider, then fallback to the next
  - LLMUnavailableError once every provider fails
  - Usage accounting on the provider row and in platform_usage_logs
  - Rows without an API key, inactive rows and the local stub fallback
  - Install hints name the real SDK distributions
"""

import sys

import pytest

from app.ai import gateway as gateway_module
from app.ai.gateway import AnthropicProvider, GeminiProvider, LLMGateway, LLMProvider, OpenAIProvider
from app.core.exceptions import LLMUnavailableError
from app.models import db
from app.models.platform import AIProvider, PlatformUsageLog

MESSAGES = [{"role": "user", "content": "hello"}]


class _Recorder(LLMProvider):
    """Fake provider; ``failures`` calls raise before the class starts answering."""

    calls = []
    failures = 0

    def chat(self, messages, model, **kwargs):
        type(self).calls.append(model)
        if len(type(self).calls) <= type(self).failures:
            raise ConnectionError(f"{model} down")
        return {"content": f"reply from {model}", "prompt_tokens": 10, "completion_tokens": 20, "model": model}


def _fake(name, failures=0):
    return type(name, (_Recorder,), {"calls": [], "failures": failures})


@pytest.fixture()
def providers(monkeypatch):
    """Register fake provider classes and give each an API key env var."""
    def _register(kind, failures=0):
        cls = _fake(kind, failures)
        monkeypatch.setitem(gateway_module.PROVIDER_CLASSES, kind, cls)
        monkeypatch.setenv(f"{kind.upper()}_KEY", "secret")
        return cls

    return _register


def _row(kind, priority, model=None, **kwargs):
    row = AIProvider(
        name=f"{kind} #{priority}",
        provider=kind,
        model=model or f"{kind}-model",
        api_key_env_var=kwargs.pop("api_key_env_var", f"{kind.upper()}_KEY"),
        priority=priority,
        **kwargs,
    )
    db.session.add(row)
    db.session.commit()
    return row


def _gateway():
    return LLMGateway(max_retries=2, backoff_base=0)


class TestChain:
    def test_lowest_priority_first(self, providers):
        first, second = providers("fake_a"), providers("fake_b")
        _row("fake_a", 2)
        _row("fake_b", 1)

        result = _gateway().chat(MESSAGES, "scope")
        assert result["provider"] == "fake_b"
        assert result["content"] == "reply from fake_b-model"
        assert second.calls == ["fake_b-model"]
        assert first.calls == []

    def test_retry_then_fallback(self, providers):
        flaky, backup = providers("flaky", failures=5), providers("backup")
        _row("flaky", 1)
        _row("backup", 2)

        result = _gateway().chat(MESSAGES, "wbs")
        assert result["provider"] == "backup"
        assert flaky.calls == ["flaky-model", "flaky-model"]
        assert backup.calls == ["backup-model"]

    def test_retry_recovers_on_same_provider(self, providers):
        flaky, backup = providers("flaky", failures=1), providers("backup")
        _row("flaky", 1)
        _row("backup", 2)

        assert _gateway().chat(MESSAGES, "wbs")["provider"] == "flaky"
        assert len(flaky.calls) == 2
        assert backup.calls == []

    def test_every_provider_failing_raises(self, providers):
        providers("down_a", failures=9)
        providers("down_b", failures=9)
        _row("down_a", 1)
        _row("down_b", 2)

        with pytest.raises(LLMUnavailableError) as exc_info:
            _gateway().chat(MESSAGES, "roadmap")
        assert exc_info.value.purpose == "roadmap"
        assert isinstance(exc_info.value.last_error, ConnectionError)

        log = PlatformUsageLog.query.one()
        assert log.resource == "roadmap"
        assert log.meta["success"] is False
        assert "down" in log.meta["error"]

    def test_skips_rows_without_api_key(self, providers, monkeypatch):
        keyless, keyed = providers("keyless"), providers("keyed")
        monkeypatch.delenv("KEYLESS_KEY")
        _row("keyless", 1)
        _row("keyed", 2)

        assert _gateway().chat(MESSAGES, "scope")["provider"] == "keyed"
        assert keyless.calls == []

    def test_inactive_rows_ignored(self, providers):
        off, on = providers("off"), providers("on")
        _row("off", 1, is_active=False)
        _row("on", 2)

        assert _gateway().chat(MESSAGES, "scope")["provider"] == "on"
        assert off.calls == []

    def test_no_rows_uses_local_stub(self):
        result = _gateway().chat(MESSAGES, "free_text")
        assert result["provider"] == "local"
        assert result["model"] == "local-stub"


class TestUsage:
    def test_success_updates_row_and_logs(self, providers, user):
        providers("metered")
        row = _row("metered", 1, model="metered-large")

        _gateway().chat(MESSAGES, "proposal", user_id=user.id)
        db.session.commit()

        db.session.expire_all()
        row = db.session.get(AIProvider, row.id)
        assert row.total_tokens_used == 30
        assert row.last_used_at is not None

        log = PlatformUsageLog.query.one()
        assert log.user_id == user.id
        assert log.action == "ai_call"
        assert log.resource == "proposal"
        assert log.meta["provider"] == "metered"
        assert log.meta["model"] == "metered-large"
        assert log.meta["total_tokens"] == 30
        assert log.meta["success"] is True

    def test_tokens_accumulate(self, providers):
        providers("metered")
        row = _row("metered", 1)
        gw = _gateway()
        gw.chat(MESSAGES, "scope")
        gw.chat(MESSAGES, "scope")
        db.session.commit()

        db.session.expire_all()
        assert db.session.get(AIProvider, row.id).total_tokens_used == 60
        assert PlatformUsageLog.query.count() == 2


class TestMissingSdk:
    @pytest.mark.parametrize("cls, module, hint", [
        (AnthropicProvider, "anthropic", "pip install anthropic"),
        (OpenAIProvider, "openai", "pip install openai"),
        (GeminiProvider, "google", "pip install google-genai"),
    ])
    def test_install_hint_names_distribution(self, monkeypatch, cls, module, hint):
        monkeypatch.setitem(sys.modules, module, None)
        with pytest.raises(RuntimeError) as exc_info:
            cls(api_key="secret")._get_client()
        assert str(exc_info.value).endswith(hint)

"""Tests for provider failover and the LotL browser-session client."""

from __future__ import annotations

from typing import List
from unittest.mock import MagicMock, patch

import httpx
import pytest

from parallax.config import settings
from parallax.services.completion import CompletionClient
from parallax.services.errors import CompletionError, RateLimitError
from parallax.services.lotl_client import LotLClient, LotLFatalError


def _dispatcher(outcomes: dict, seen: List[str]):
    """Side effect for CompletionClient._dispatch keyed by provider."""

    def dispatch(provider, system_prompt, user_prompt, max_tokens):
        seen.append(provider)
        outcome = outcomes[provider]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    return dispatch


# ---------------------------------------------------------------------------
# Failover chain
# ---------------------------------------------------------------------------

class TestFailoverChain:
    """Primary first, then configured or credentialed providers."""

    def test_explicit_chain_deduplicated(self) -> None:
        client = CompletionClient(provider="openai", failover_chain=["anthropic", "openai", "lotl"])
        assert client._get_failover_chain() == ["openai", "anthropic", "lotl"]

    def test_chain_from_credentials(self) -> None:
        with patch.object(settings, "ANTHROPIC_API_KEY", None), \
                patch.object(settings, "OPENAI_API_KEY", "sk-test"), \
                patch.object(settings, "GEMINI_API_KEY", None):
            client = CompletionClient(provider="gemini", failover_chain=[])
            assert client._get_failover_chain() == ["gemini", "openai", "lotl"]

    def test_provider_normalized(self) -> None:
        assert CompletionClient(provider=" Anthropic ", failover_chain=["lotl"]).provider == "anthropic"


class TestComplete:
    """complete() walks the chain until a non-empty reply."""

    def test_falls_through_failures_and_empty_replies(self) -> None:
        seen: List[str] = []
        outcomes = {"anthropic": ConnectionError("down"), "openai": "   ", "lotl": " hello "}
        client = CompletionClient(provider="anthropic", failover_chain=["openai", "lotl"])
        with patch.object(CompletionClient, "_dispatch", side_effect=_dispatcher(outcomes, seen)):
            assert client.complete("system", "user", 100) == "hello"
        assert seen == ["anthropic", "openai", "lotl"]

    def test_primary_success_stops(self) -> None:
        seen: List[str] = []
        client = CompletionClient(provider="openai", failover_chain=["lotl"])
        with patch.object(CompletionClient, "_dispatch", side_effect=_dispatcher({"openai": "ok"}, seen)):
            assert client.complete("s", "u", 10) == "ok"
        assert seen == ["openai"]

    def test_rate_limit_propagates(self) -> None:
        seen: List[str] = []
        limited = RateLimitError(provider="anthropic", retry_after_seconds=12.5)
        client = CompletionClient(provider="anthropic", failover_chain=["lotl"])
        with patch.object(CompletionClient, "_dispatch", side_effect=_dispatcher({"anthropic": limited}, seen)):
            with pytest.raises(RateLimitError) as info:
                client.complete("s", "u", 10)
        assert info.value.retry_after_seconds == 12.5
        assert seen == ["anthropic"]

    def test_all_failed(self) -> None:
        outcomes = {"anthropic": RuntimeError("a"), "lotl": ConnectionError("b")}
        client = CompletionClient(provider="anthropic", failover_chain=["lotl"])
        with patch.object(CompletionClient, "_dispatch", side_effect=_dispatcher(outcomes, [])):
            with pytest.raises(CompletionError, match="last error: b"):
                client.complete("s", "u", 10)

    def test_all_empty(self) -> None:
        client = CompletionClient(provider="openai", failover_chain=["lotl"])
        with patch.object(CompletionClient, "_dispatch", side_effect=_dispatcher({"openai": "", "lotl": ""}, [])):
            with pytest.raises(CompletionError, match="empty"):
                client.complete("s", "u", 10)

    def test_missing_key_falls_back_to_lotl(self) -> None:
        lotl = MagicMock()
        lotl.is_available.return_value = True
        lotl.chat.return_value = '{"ok": true}'
        with patch.object(settings, "ANTHROPIC_API_KEY", None):
            client = CompletionClient(provider="anthropic", failover_chain=["lotl"], lotl_client=lotl)
            assert client.complete("Be brief.", "Hi there", 50) == '{"ok": true}'
        prompt = lotl.chat.call_args[0][0]
        assert prompt == "SYSTEM:\nBe brief.\n\nUSER:\nHi there"
        assert lotl.chat.call_args[1] == {"fresh": True}

    def test_lotl_unavailable(self) -> None:
        lotl = MagicMock()
        lotl.is_available.return_value = False
        client = CompletionClient(provider="lotl", failover_chain=["lotl"], lotl_client=lotl)
        with pytest.raises(CompletionError):
            client.complete("s", "u", 10)
        lotl.chat.assert_not_called()

    def test_unknown_provider(self) -> None:
        client = CompletionClient(provider="bard", failover_chain=["bard"])
        with pytest.raises(CompletionError, match="Unsupported"):
            client.complete("s", "u", 10)


# ---------------------------------------------------------------------------
# LotL client
# ---------------------------------------------------------------------------

def _response(payload: dict, status_code: int = 200) -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.raise_for_status.return_value = None
    response.json.return_value = payload
    return response


@pytest.fixture
def http():
    """Patches httpx.Client; set ``http.post.side_effect`` to script responses."""
    with patch("parallax.services.lotl_client.httpx.Client") as MockClient:
        ctx = MagicMock()
        MockClient.return_value.__enter__ = MagicMock(return_value=ctx)
        MockClient.return_value.__exit__ = MagicMock(return_value=False)
        yield ctx


class TestLotLClient:
    """Retry, fail-fast and payload handling."""

    def test_chat_success(self, http) -> None:
        http.post.return_value = _response({"success": True, "reply": "Hello!"})
        client = LotLClient(base_url="http://localhost:9999/", sleep=MagicMock())
        assert client.chat("Say hello", fresh=True, session_id=42) == "Hello!"
        url = http.post.call_args[0][0]
        assert url == "http://localhost:9999/gemini"
        assert http.post.call_args[1]["json"] == {"prompt": "Say hello", "sessionId": "42", "fresh": True}

    def test_platform_endpoint(self, http) -> None:
        http.post.return_value = _response({"success": True, "reply": "ok"})
        LotLClient(sleep=MagicMock()).chat("hi", platform="chatgpt")
        assert http.post.call_args[0][0].endswith("/chatgpt")

    def test_unknown_platform(self, http) -> None:
        with pytest.raises(ValueError):
            LotLClient(sleep=MagicMock()).chat("hi", platform="myspace")
        http.post.assert_not_called()

    def test_captcha_fails_fast(self, http) -> None:
        http.post.return_value = _response({"success": False, "error": "CAPTCHA verification required"})
        sleep = MagicMock()
        with pytest.raises(LotLFatalError, match="(?i)captcha"):
            LotLClient(sleep=sleep).chat("hi")
        assert http.post.call_count == 1
        sleep.assert_not_called()

    def test_sign_in_reply_fails_fast(self, http) -> None:
        http.post.return_value = _response({"success": True, "reply": "Please sign in to continue"})
        with pytest.raises(RuntimeError):
            LotLClient(sleep=MagicMock()).chat("hi")
        assert http.post.call_count == 1

    def test_busy_retries_with_backoff(self, http) -> None:
        http.post.return_value = _response({"success": False, "error": "LotL Server Busy", "busy": True})
        sleep = MagicMock()
        with pytest.raises(RuntimeError, match="Busy"):
            LotLClient(sleep=sleep, base_delay=2.0).chat("hi")
        assert http.post.call_count == 5
        assert sleep.call_count == 4
        first_delay = sleep.call_args_list[0][0][0]
        assert 2.0 <= first_delay <= 3.0

    def test_503_then_success(self, http) -> None:
        http.post.side_effect = [_response({}, status_code=503), _response({"success": True, "reply": "done"})]
        sleep = MagicMock()
        assert LotLClient(sleep=sleep).chat("hi") == "done"
        assert http.post.call_count == 2
        sleep.assert_called_once()

    def test_error_reply_retried(self, http) -> None:
        http.post.side_effect = [
            _response({"success": True, "reply": "Error: something went wrong"}),
            _response({"success": True, "reply": "fine"}),
        ]
        assert LotLClient(sleep=MagicMock()).chat("hi") == "fine"

    def test_health(self, http) -> None:
        http.get.return_value = _response({"status": "ok"})
        client = LotLClient()
        assert client.is_available()
        assert http.get.call_args[0][0] == "http://localhost:3000/health"

    def test_unreachable(self, http) -> None:
        http.get.side_effect = httpx.ConnectError("refused")
        client = LotLClient()
        with pytest.raises(ConnectionError):
            client.health()
        assert not client.is_available()

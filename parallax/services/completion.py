from __future__ import annotations

import logging
import re
from typing import Optional

from parallax.config import settings
from parallax.services.errors import CompletionError, RateLimitError
from parallax.services.lotl_client import LotLClient

logger = logging.getLogger(__name__)

# Providers that need an API key, in default failover order. "lotl" needs none.
KEYED_PROVIDERS = ("anthropic", "openai", "gemini")
SUPPORTED_PROVIDERS = KEYED_PROVIDERS + ("lotl",)


def _api_key(provider: str) -> Optional[str]:
    return getattr(settings, f"{provider.upper()}_API_KEY", None)


def _retry_after_from(exc: Exception, default: float) -> float:
    m = re.search(r"retry in ([0-9]+\.?[0-9]*)s", str(exc), re.IGNORECASE)
    if m:
        try:
            return float(m.group(1))
        except ValueError:
            pass
    return default


def _looks_rate_limited(exc: Exception) -> bool:
    msg = str(exc).lower()
    return "429" in msg or "quota" in msg or "rate limit" in msg


class CompletionClient:
    """The black-box completion call: ``complete(system, user, max_tokens) -> text``.

    Tries the primary provider, then each failover provider in order. A rate
    limit propagates immediately so the caller can back off; any other failure
    (including an empty reply) moves on to the next provider.
    """

    def __init__(
        self,
        provider: Optional[str] = None,
        failover_chain: Optional[list[str]] = None,
        lotl_client: Optional[LotLClient] = None,
        temperature: float = 0.4,
    ) -> None:
        self.provider = (provider or settings.LLM_PROVIDER).strip().lower()
        self._explicit_chain = failover_chain if failover_chain is not None else settings.LLM_FAILOVER_CHAIN
        self._lotl = lotl_client
        self.temperature = temperature

    def _get_failover_chain(self) -> list[str]:
        """Primary provider first, then configured failovers (or those with credentials)."""
        if self._explicit_chain:
            candidates = list(self._explicit_chain)
        else:
            candidates = [name for name in KEYED_PROVIDERS if _api_key(name)]
            # LotL needs no key, so it is always the last resort.
            candidates.append("lotl")

        chain = [self.provider]
        chain.extend(p for p in candidates if p not in chain)
        return chain

    def complete(self, system_prompt: str, user_prompt: str, max_tokens: int) -> str:
        chain = self._get_failover_chain()
        last_error: Exception | None = None

        for provider in chain:
            try:
                text = self._dispatch(provider, system_prompt, user_prompt, max_tokens).strip()
                if text:
                    if provider != self.provider:
                        logger.warning("[FAILOVER] Succeeded on fallback provider: %s", provider)
                    return text
                logger.warning("[FAILOVER] Provider %s returned an empty response", provider)
            except RateLimitError:
                raise
            except Exception as exc:
                last_error = exc
                logger.warning("[FAILOVER] Provider %s failed: %s", provider, exc)

        if last_error is not None:
            raise CompletionError(f"All LLM providers failed (last error: {last_error})") from last_error
        raise CompletionError("All LLM providers returned empty responses")

    def _dispatch(self, provider: str, system_prompt: str, user_prompt: str, max_tokens: int) -> str:
        if provider == "lotl":
            return self._lotl_complete(system_prompt, user_prompt)
        if provider not in KEYED_PROVIDERS:
            raise ValueError(f"Unsupported LLM provider: {provider}")
        if not _api_key(provider):
            raise RuntimeError(f"{provider} API key is not set")
        complete = getattr(self, f"_{provider}_complete")
        return complete(system_prompt, user_prompt, max_tokens)

    def _anthropic_complete(self, system_prompt: str, user_prompt: str, max_tokens: int) -> str:
        import anthropic

        client = anthropic.Anthropic(api_key=settings.ANTHROPIC_API_KEY)
        try:
            resp = client.messages.create(
                model=settings.ANTHROPIC_MODEL,
                system=system_prompt,
                messages=[{"role": "user", "content": user_prompt}],
                max_tokens=max_tokens,
                temperature=self.temperature,
            )
        except anthropic.RateLimitError as exc:
            raise RateLimitError(provider="anthropic", retry_after_seconds=60.0) from exc

        parts = [getattr(block, "text", "") for block in resp.content]
        return "".join(parts).strip()

    def _openai_complete(self, system_prompt: str, user_prompt: str, max_tokens: int) -> str:
        import openai

        client = openai.OpenAI(api_key=settings.OPENAI_API_KEY)
        try:
            resp = client.chat.completions.create(
                model=settings.OPENAI_MODEL,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                max_tokens=max_tokens,
                temperature=self.temperature,
            )
        except openai.RateLimitError as exc:
            raise RateLimitError(provider="openai", retry_after_seconds=_retry_after_from(exc, 30.0)) from exc

        return (resp.choices[0].message.content or "").strip()

    def _gemini_complete(self, system_prompt: str, user_prompt: str, max_tokens: int) -> str:
        import google.generativeai as genai

        configure_kwargs = {"api_key": settings.GEMINI_API_KEY}
        base_url = settings.GEMINI_BASE_URL
        if base_url:
            base_url = base_url.replace("https://", "").replace("http://", "").rstrip("/")
            configure_kwargs["client_options"] = {"api_endpoint": base_url}
            configure_kwargs["transport"] = "rest"
        genai.configure(**configure_kwargs)

        model = genai.GenerativeModel(settings.GEMINI_MODEL, system_instruction=system_prompt)
        try:
            resp = model.generate_content(
                user_prompt,
                generation_config={
                    "temperature": self.temperature,
                    "max_output_tokens": max_tokens,
                    "response_mime_type": "application/json",
                },
            )
        except Exception as exc:
            if _looks_rate_limited(exc):
                raise RateLimitError(provider="gemini", retry_after_seconds=_retry_after_from(exc, 30.0)) from exc
            raise

        text = getattr(resp, "text", None)
        if not text:
            try:
                text = resp.candidates[0].content.parts[0].text
            except Exception:
                text = ""
        return str(text).strip()

    def _lotl_complete(self, system_prompt: str, user_prompt: str) -> str:
        client = self._lotl or LotLClient(base_url=settings.LOTL_BASE_URL, timeout=settings.LOTL_TIMEOUT)

        if not client.is_available():
            raise ConnectionError(f"LotL Controller not available at {settings.LOTL_BASE_URL}")

        # Browser chat has no system role; merge both prompts into one turn.
        prompt = f"SYSTEM:\n{system_prompt.strip()}\n\nUSER:\n{user_prompt.strip()}"
        return str(client.chat(prompt, fresh=True)).strip()

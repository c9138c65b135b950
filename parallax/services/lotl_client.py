"""
LotL Client - Python interface for the LotL Controller API

Routes completion prompts through a logged-in browser session when no API
key is configured. Used by CompletionClient as the last provider in the chain.

Usage:
    from parallax.services.lotl_client import LotLClient

    client = LotLClient()
    if client.is_available():
        print(client.chat("Say hello"))
"""

from __future__ import annotations

import logging
import random
import time
from typing import Any, Callable, Optional

import httpx

logger = logging.getLogger(__name__)

# Replies containing these mean the browser session needs a human; retrying won't help.
FATAL_MARKERS = ("captcha", "verify it's you", "sign in", "unusual traffic")

PLATFORM_ENDPOINTS = {
    "gemini": "/gemini",
    "aistudio": "/aistudio",
    "chatgpt": "/chatgpt",
    "copilot": "/copilot",
}


class LotLFatalError(RuntimeError):
    """The controller reached the platform but the session is unusable (captcha, sign-in)."""


class LotLClient:
    """
    Client for the LotL (Living-off-the-Land) Controller API.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:3000",
        timeout: float = 180.0,
        *,
        max_retries: int = 5,
        base_delay: float = 2.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Args:
            base_url: Controller URL (default: http://localhost:3000)
            timeout: Request timeout in seconds (default: 180)
            max_retries: Attempts per chat() call before giving up
            base_delay: First backoff delay in seconds; doubles per attempt
            sleep: Injected for tests
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self.base_delay = base_delay
        self._sleep = sleep

    def health(self) -> dict:
        """
        Check if the controller is running.

        Raises:
            ConnectionError: If controller is not reachable
        """
        try:
            with httpx.Client(timeout=5.0) as client:
                response = client.get(f"{self.base_url}/health")
                return response.json()
        except httpx.ConnectError as exc:
            raise ConnectionError(
                f"Cannot connect to LotL Controller at {self.base_url}. Is it running?"
            ) from exc

    def is_available(self) -> bool:
        try:
            return self.health().get("status") == "ok"
        except Exception:
            return False

    @staticmethod
    def _is_fatal(text: str) -> bool:
        t = str(text or "").lower()
        return any(marker in t for marker in FATAL_MARKERS)

    def chat(
        self,
        prompt: str,
        timeout: Optional[float] = None,
        session_id: Optional[str] = None,
        fresh: bool = False,
        platform: str = "gemini",
    ) -> str:
        """
        Send a prompt and return the model's reply text.

        Busy (503) responses, network errors and transient platform errors are
        retried with exponential backoff. Captcha / sign-in states fail fast.

        Raises:
            LotLFatalError: The browser session needs manual attention
            RuntimeError / httpx errors: All retries exhausted
        """
        payload: dict[str, Any] = {"prompt": prompt}
        if session_id:
            payload["sessionId"] = str(session_id)
        if fresh:
            payload["fresh"] = True

        endpoint = PLATFORM_ENDPOINTS.get(platform)
        if endpoint is None:
            raise ValueError(f"Unsupported LotL platform: {platform}")

        last_error: Exception | None = None

        for attempt in range(self.max_retries):
            try:
                with httpx.Client(timeout=timeout or self.timeout) as client:
                    response = client.post(f"{self.base_url}{endpoint}", json=payload)

                    # Busy: the controller is still finishing another request.
                    if response.status_code == 503:
                        raise RuntimeError("LotL Server Busy (503)")

                    response.raise_for_status()
                    data = response.json()

                if data.get("success"):
                    reply = str(data.get("reply") or "")
                    if self._is_fatal(reply):
                        raise LotLFatalError(f"LotL session needs attention: {reply[:100]}")
                    if reply.strip().lower().startswith("error"):
                        raise RuntimeError(f"LotL returned error response: {reply[:100]}")
                    return reply

                error_msg = str(data.get("error") or "Unknown error")
                if self._is_fatal(error_msg):
                    raise LotLFatalError(f"LotL session needs attention: {error_msg}")
                if data.get("busy") or "busy" in error_msg.lower():
                    raise RuntimeError(f"LotL Server Busy: {error_msg}")
                raise RuntimeError(f"LotL API Error: {error_msg}")

            except LotLFatalError:
                raise
            except (httpx.HTTPError, ConnectionError, RuntimeError, ValueError) as exc:
                last_error = exc

            if attempt < self.max_retries - 1:
                delay = self.base_delay * (2 ** attempt) + random.uniform(0, 1)
                logger.warning(
                    "[LLM] LotL request failed (attempt %d/%d), retrying in %.1fs: %s",
                    attempt + 1,
                    self.max_retries,
                    delay,
                    last_error,
                )
                self._sleep(delay)

        raise last_error or RuntimeError("LotL request failed after retries")

    def __repr__(self) -> str:
        return f"LotLClient(base_url='{self.base_url}', timeout={self.timeout})"

from __future__ import annotations


class ParallaxError(RuntimeError):
    """Base class for every error raised by the engine."""


class CompletionError(ParallaxError):
    """The completion backend failed (every provider in the chain was exhausted)."""


class RateLimitError(CompletionError):
    def __init__(self, *, provider: str, retry_after_seconds: float) -> None:
        super().__init__(f"Rate limited by {provider}; retry after {retry_after_seconds:.1f}s")
        self.provider = provider
        self.retry_after_seconds = retry_after_seconds


class SessionNotFound(ParallaxError, KeyError):
    def __init__(self, session_id: str) -> None:
        super().__init__(f"Unknown session: {session_id}")
        self.session_id = session_id

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the plain message.
        return str(self.args[0])


class MessageNotFound(ParallaxError, KeyError):
    def __init__(self, message_id: str) -> None:
        super().__init__(f"Unknown message: {message_id}")
        self.message_id = message_id

    def __str__(self) -> str:
        return str(self.args[0])


class IssueNotFound(ParallaxError, KeyError):
    def __init__(self, issue_id: str) -> None:
        super().__init__(f"Unknown issue: {issue_id}")
        self.issue_id = issue_id

    def __str__(self) -> str:
        return str(self.args[0])


class UnknownTriggerError(ParallaxError, ValueError):
    """Conductor received an event outside its trigger vocabulary."""


class PhaseTransitionError(ParallaxError):
    """Attempted to move a session backwards through the onboarding phases."""

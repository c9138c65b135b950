from __future__ import annotations

from typing import TYPE_CHECKING, Any, List, Optional, Protocol

if TYPE_CHECKING:
    from parallax.services.record_store import Issue, Message, Session


class CompletionBackend(Protocol):
    def complete(self, system_prompt: str, user_prompt: str, max_tokens: int) -> str:
        """Return the model's text for one system + user prompt pair."""
        ...


class RecordStore(Protocol):
    """CRUD over sessions, messages and issues. Last write wins per record id."""

    def create_session(self, session: "Session") -> "Session":
        ...

    def get_session(self, session_id: str) -> "Session":
        """Raises SessionNotFound."""
        ...

    def find_session_by_code(self, room_code: str) -> Optional["Session"]:
        ...

    def update_session(self, session_id: str, **changes: Any) -> "Session":
        ...

    def insert_message(self, message: "Message") -> "Message":
        ...

    def get_message(self, session_id: str, message_id: str) -> "Message":
        """Raises MessageNotFound."""
        ...

    def list_messages(self, session_id: str) -> List["Message"]:
        """Messages in creation order."""
        ...

    def update_message(self, session_id: str, message_id: str, **changes: Any) -> "Message":
        ...

    def insert_issue(self, issue: "Issue") -> "Issue":
        ...

    def list_issues(self, session_id: str) -> List["Issue"]:
        """Issues ordered by position."""
        ...

    def update_issue(self, session_id: str, issue_id: str, **changes: Any) -> "Issue":
        """Raises IssueNotFound."""
        ...

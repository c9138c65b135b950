"""Shared fakes: a scripted completion backend, a manual clock and scheduler."""

from __future__ import annotations

import json
from typing import Callable, List, Tuple

import pytest

from parallax.services.errors import CompletionError
from parallax.services.record_store import InMemoryRecordStore, Message, Session


class ScriptedBackend:
    """Returns queued replies in order; an Exception in the queue is raised instead."""

    def __init__(self, *replies) -> None:
        self.replies = list(replies)
        self.calls: List[Tuple[str, str, int]] = []

    def queue(self, *replies) -> "ScriptedBackend":
        self.replies.extend(replies)
        return self

    def complete(self, system_prompt: str, user_prompt: str, max_tokens: int) -> str:
        self.calls.append((system_prompt, user_prompt, max_tokens))
        if not self.replies:
            raise CompletionError("no scripted reply left")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, (dict, list)):
            return json.dumps(reply)
        return reply


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now


class _ManualHandle:
    def __init__(self, when: float, callback: Callable[[], None]) -> None:
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Fires callbacks only when the test advances time."""

    def __init__(self, clock: FakeClock) -> None:
        self.clock = clock
        self.handles: List[_ManualHandle] = []

    def call_later(self, delay_seconds: float, callback: Callable[[], None]) -> _ManualHandle:
        handle = _ManualHandle(self.clock.now + delay_seconds, callback)
        self.handles.append(handle)
        return handle

    @property
    def pending(self) -> List[_ManualHandle]:
        return [h for h in self.handles if not h.cancelled]

    def advance(self, seconds: float) -> None:
        target = self.clock.now + seconds
        while True:
            due = sorted((h for h in self.pending if h.when <= target), key=lambda h: h.when)
            if not due:
                break
            handle = due[0]
            self.handles.remove(handle)
            self.clock.now = max(self.clock.now, handle.when)
            handle.callback()
        self.clock.now = target


@pytest.fixture
def store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def backend() -> ScriptedBackend:
    return ScriptedBackend()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def scheduler(clock: FakeClock) -> ManualScheduler:
    return ManualScheduler(clock)


@pytest.fixture
def make_session(store: InMemoryRecordStore):
    def _make(**fields) -> Session:
        fields.setdefault("context_mode", "intimate")
        return store.create_session(Session(**fields))

    return _make


@pytest.fixture
def say(store: InMemoryRecordStore):
    """Insert a message and return it."""

    def _say(session_id: str, sender: str, content: str, **fields) -> Message:
        return store.insert_message(Message(session_id=session_id, sender=sender, content=content, **fields))

    return _say


def legacy_reply(**overrides) -> dict:
    reply = {
        "observation": "You said I never listen.",
        "feeling": "frustrated",
        "need": "to be heard",
        "request": "Could you put your phone down when I talk?",
        "subtext": "I feel alone in this relationship.",
        "blindSpots": ["Partner may also feel unheard"],
        "unmetNeeds": ["connection"],
        "nvcTranslation": "When I talk and you look at your phone, I feel lonely.",
        "emotionalTemperature": 0.6,
    }
    reply.update(overrides)
    return reply


@pytest.fixture
def legacy():
    return legacy_reply

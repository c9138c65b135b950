"""Issue tracking: grievances surfaced by analysis and graded as the conversation moves on.

Issues are never deleted. New ones are appended with increasing ``position``;
existing ones are re-graded by later analysis or set explicitly by a user.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from parallax.config import prompts_issue_analysis, settings
from parallax.services.analysis_parser import as_text, is_truthy, strip_code_fences
from parallax.services.errors import IssueNotFound
from parallax.services.interfaces import CompletionBackend, RecordStore
from parallax.services.prompt_composer import (
    build_name_map,
    format_history,
    other_participant,
    to_conversation_history,
)
from parallax.services.record_store import ISSUE_STATUSES, Issue
from parallax.utils.scheduling import RepeatingTask, Scheduler

logger = logging.getLogger(__name__)

GRADED_STATUSES = ("well_addressed", "poorly_addressed")


@dataclass(frozen=True)
class ExtractedIssue:
    label: str
    description: str


@dataclass(frozen=True)
class GradedIssue:
    issue_id: str
    status: str
    rationale: str = ""


@dataclass
class IssueAnalysisResult:
    new_issues: List[ExtractedIssue] = field(default_factory=list)
    graded_issues: List[GradedIssue] = field(default_factory=list)


def parse_issue_analysis(raw: str) -> Optional[IssueAnalysisResult]:
    """Tolerant parse; malformed entries are dropped, unparseable text gives None."""
    try:
        parsed = json.loads(strip_code_fences(raw))
        if not isinstance(parsed, dict):
            return None

        new_issues = []
        raw_new = parsed.get("newIssues")
        for item in raw_new if isinstance(raw_new, list) else []:
            if isinstance(item, dict) and is_truthy(item.get("label")) and is_truthy(item.get("description")):
                new_issues.append(
                    ExtractedIssue(label=as_text(item["label"]), description=as_text(item["description"]))
                )

        graded = []
        raw_graded = parsed.get("gradedIssues")
        for item in raw_graded if isinstance(raw_graded, list) else []:
            if not isinstance(item, dict) or not is_truthy(item.get("issueId")):
                continue
            status = item.get("status")
            if status not in GRADED_STATUSES:
                continue
            rationale = as_text(item.get("rationale")) if is_truthy(item.get("rationale")) else ""
            graded.append(GradedIssue(issue_id=as_text(item["issueId"]), status=status, rationale=rationale))

        return IssueAnalysisResult(new_issues=new_issues, graded_issues=graded)
    except Exception as exc:
        logger.warning("[ISSUES] Unparseable issue analysis (%s): %.120r", type(exc).__name__, raw)
        return None


def format_issues(issues: List[Issue], name_map: dict) -> str:
    if not issues:
        return prompts_issue_analysis.NO_ISSUES_PLACEHOLDER
    return "\n".join(
        prompts_issue_analysis.ISSUE_LINE.format(
            id=issue.id,
            label=issue.label,
            raised_by=name_map.get(issue.raised_by, issue.raised_by),
            status=issue.status,
            description=issue.description,
        )
        for issue in issues
    )


@dataclass
class IssueUpdate:
    created: List[Issue] = field(default_factory=list)
    graded: List[Issue] = field(default_factory=list)
    error: Optional[str] = None


class IssueTracker:
    def __init__(self, store: RecordStore, backend: CompletionBackend) -> None:
        self.store = store
        self.backend = backend

    def build_prompt(self, session_id: str, message_id: str) -> str:
        session = self.store.get_session(session_id)
        target = self.store.get_message(session_id, message_id)
        messages = self.store.list_messages(session_id)
        issues = self.store.list_issues(session_id)

        name_map = build_name_map(session.person_a_name, session.person_b_name)
        prior = []
        for message in messages:
            if message.id == target.id:
                break
            prior.append(message)

        return prompts_issue_analysis.USER_TEMPLATE.format(
            history=format_history(to_conversation_history(prior, name_map)),
            issues=format_issues(issues, name_map),
            sender_name=name_map.get(target.sender, target.sender),
            content=target.content,
            other_person_name=name_map[other_participant(target.sender)],
        )

    def analyze(self, session_id: str, message_id: str) -> IssueUpdate:
        """Extract new issues from one human message and re-grade open ones. Never raises on backend failure."""
        target = self.store.get_message(session_id, message_id)
        if not target.is_human:
            return IssueUpdate()

        user_prompt = self.build_prompt(session_id, message_id)
        try:
            raw = self.backend.complete(
                prompts_issue_analysis.SYSTEM_PROMPT, user_prompt, settings.ISSUE_ANALYSIS_MAX_TOKENS
            )
        except Exception as exc:
            logger.warning("[ISSUES] Issue analysis failed for %s/%s: %s", session_id, message_id, exc)
            return IssueUpdate(error=f"Issue analysis failed: {exc}")

        result = parse_issue_analysis(raw)
        if result is None:
            return IssueUpdate(error="Failed to parse issue analysis")

        update = IssueUpdate()
        existing = self.store.list_issues(session_id)
        max_position = max((issue.position for issue in existing), default=0)
        for offset, extracted in enumerate(result.new_issues, start=1):
            issue = self.store.insert_issue(
                Issue(
                    session_id=session_id,
                    label=extracted.label,
                    description=extracted.description,
                    raised_by=target.sender,
                    source_message_id=message_id,
                    position=max_position + offset,
                )
            )
            update.created.append(issue)

        for graded in result.graded_issues:
            try:
                issue = self.store.update_issue(
                    session_id,
                    graded.issue_id,
                    status=graded.status,
                    addressed_by_message_id=message_id,
                    grading_rationale=graded.rationale,
                )
            except IssueNotFound:
                logger.info("[ISSUES] Model graded unknown issue %s; ignoring", graded.issue_id)
                continue
            update.graded.append(issue)

        logger.info(
            "[ISSUES] %s: %d new, %d graded", session_id, len(update.created), len(update.graded)
        )
        return update

    def set_status(self, session_id: str, issue_id: str, status: str) -> Issue:
        """Explicit user re-grade. Any of the four statuses is allowed."""
        if status not in ISSUE_STATUSES:
            raise ValueError(f"Unknown issue status: {status!r}")
        return self.store.update_issue(session_id, issue_id, status=status)


class IssuePoller:
    """Re-analyzes the latest human message on a fixed interval until stopped."""

    def __init__(
        self,
        tracker: IssueTracker,
        session_id: str,
        *,
        interval_seconds: float = settings.ISSUE_POLL_INTERVAL_SECONDS,
        scheduler: Optional[Scheduler] = None,
    ) -> None:
        self.tracker = tracker
        self.session_id = session_id
        self._last_analyzed: Optional[str] = None
        self._task = RepeatingTask(interval_seconds, self.poll_once, scheduler)

    @property
    def running(self) -> bool:
        return self._task.running

    def start(self) -> None:
        self._task.start()

    def stop(self) -> None:
        self._task.stop()

    def poll_once(self) -> Optional[IssueUpdate]:
        messages = self.tracker.store.list_messages(self.session_id)
        latest = next((m for m in reversed(messages) if m.is_human), None)
        if latest is None or latest.id == self._last_analyzed:
            return None
        self._last_analyzed = latest.id
        return self.tracker.analyze(self.session_id, latest.id)

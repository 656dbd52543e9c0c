"""Short-lived, per-thread Q&A about reviewed code.

Each thread moves through three states:

    absent ──explain──▶ active ──cleanup() after TTL of inactivity──▶ removed

Contexts live in a ConversationStore owned by the service. The store is an
explicit object with an injected clock and TTL, so tests control time and
several services never share hidden module state. Nothing evicts on its
own: a scheduler must call ConversationService.cleanup() periodically.

Read-modify-write on one thread happens under that thread's lock, so two
triggers racing on the same thread cannot drop each other's messages.
"""

from __future__ import annotations

import logging
import re
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterator, Literal, NamedTuple, Optional

from prsage_core.errors import PrsageError, format_error_for_user
from prsage_core.explainer import Explainer, format_answer_comment, format_explanation_comment
from prsage_core.schemas import ExplanationResponse
from prsage_core.utils.effects import NonFatal, best_effort

logger = logging.getLogger(__name__)

CONVERSATION_TTL = timedelta(hours=2)

USAGE_MESSAGE = (
    "⚠️ No code provided to explain. Please use one of these formats:\n\n"
    "```\n/ai-explain\n```\n"
    "followed by a fenced code block, or `/ai-explain path/to/file.py:10-20`, "
    "or as a review comment on specific lines of code."
)

_QUESTION_PATTERNS = (
    re.compile(r"\?$"),
    re.compile(r"^(what|why|how|when|where|who|can|could|would|should|is|are|does|do)\b", re.IGNORECASE),
    re.compile(r"explain|clarify|elaborate", re.IGNORECASE),
)

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ConversationKey(NamedTuple):
    owner: str
    repo: str
    pr_number: int
    thread_id: Optional[int] = None

    def __str__(self) -> str:
        thread = self.thread_id if self.thread_id is not None else "main"
        return f"{self.owner}/{self.repo}/{self.pr_number}/{thread}"


@dataclass(frozen=True)
class ConversationMessage:
    role: Literal["user", "assistant"]
    content: str
    timestamp: datetime
    comment_id: Optional[int] = None


@dataclass
class ConversationContext:
    key: ConversationKey
    original_code: str
    original_explanation: ExplanationResponse
    filename: Optional[str]
    created_at: datetime
    last_activity_at: datetime
    messages: list[ConversationMessage] = field(default_factory=list)


@dataclass(frozen=True)
class CommandResult:
    success: bool
    message: str
    body: Optional[str] = None
    side_effects: tuple[NonFatal, ...] = ()


class ConversationStore:
    """Process-local conversation contexts with TTL-based sweeping."""

    def __init__(self, ttl: timedelta = CONVERSATION_TTL, clock: Clock = _utcnow):
        self.ttl = ttl
        self.clock = clock
        self._contexts: dict[ConversationKey, ConversationContext] = {}
        self._locks: dict[ConversationKey, threading.Lock] = {}
        self._guard = threading.Lock()

    def get(self, key: ConversationKey) -> ConversationContext | None:
        with self._guard:
            return self._contexts.get(key)

    def put(self, context: ConversationContext) -> None:
        with self._guard:
            self._contexts[context.key] = context

    def delete(self, key: ConversationKey) -> None:
        with self._guard:
            self._contexts.pop(key, None)

    @contextmanager
    def lock(self, key: ConversationKey) -> Iterator[None]:
        """Serialise read-modify-write on one thread key."""
        while True:
            with self._guard:
                key_lock = self._locks.setdefault(key, threading.Lock())
            key_lock.acquire()
            with self._guard:
                current = self._locks.get(key) is key_lock
            if current:
                break
            # Swept while waiting; retry on the key's live lock.
            key_lock.release()
        try:
            yield
        finally:
            key_lock.release()

    def sweep(self) -> list[ConversationKey]:
        """Remove every context idle for longer than the TTL.

        Threads whose lock is held are in use and are left alone.
        """
        now = self.clock()
        with self._guard:
            expired = [
                k
                for k, ctx in self._contexts.items()
                if now - ctx.last_activity_at > self.ttl and not self._is_held(k)
            ]
            for key in expired:
                del self._contexts[key]
                self._locks.pop(key, None)
        for key in expired:
            logger.debug("Cleaned up expired conversation %s", key)
        return expired

    def _is_held(self, key: ConversationKey) -> bool:
        key_lock = self._locks.get(key)
        return key_lock is not None and key_lock.locked()

    def __len__(self) -> int:
        return len(self._contexts)

    def __contains__(self, key: ConversationKey) -> bool:
        return key in self._contexts


class ConversationService:
    """Handles explain commands and follow-up questions on pull requests.

    ``source`` is the source-control collaborator (get_pull_request,
    get_file_content, post_comment, add_reaction).
    """

    def __init__(self, source, explainer: Explainer, store: ConversationStore | None = None):
        self.source = source
        self.explainer = explainer
        self.store = store if store is not None else ConversationStore()

    def explain(
        self,
        owner: str,
        repo: str,
        pr_number: int,
        comment_id: int | None,
        code: str | None = None,
        filename: str | None = None,
        start_line: int | None = None,
        end_line: int | None = None,
        question: str | None = None,
    ) -> CommandResult:
        effects = self._react(owner, repo, comment_id, "eyes")
        try:
            snippet = code or self._fetch_snippet(owner, repo, pr_number, filename, start_line, end_line)
            if not snippet:
                self.source.post_comment(owner, repo, pr_number, USAGE_MESSAGE)
                return CommandResult(success=False, message="No code provided", side_effects=tuple(effects))

            logger.info("Explaining %d chars for %s/%s#%d", len(snippet), owner, repo, pr_number)
            explanation = self.explainer.explain_code(snippet, filename=filename, question=question)

            key = ConversationKey(owner, repo, pr_number, comment_id)
            now = self.store.clock()
            with self.store.lock(key):
                self.store.put(
                    ConversationContext(
                        key=key,
                        original_code=snippet,
                        original_explanation=explanation,
                        filename=filename,
                        created_at=now,
                        last_activity_at=now,
                        messages=[
                            ConversationMessage("user", question or "Explain this code", now, comment_id),
                            ConversationMessage("assistant", explanation.explanation, now),
                        ],
                    )
                )

            body = format_explanation_comment(explanation, question)
            self.source.post_comment(owner, repo, pr_number, body)
        except PrsageError as e:
            logger.error("Failed to explain code for %s/%s#%d: %s", owner, repo, pr_number, e.message)
            effects.append(self._post_failure(owner, repo, pr_number, "Failed to generate explanation", e))
            return CommandResult(success=False, message=format_error_for_user(e), side_effects=tuple(effects))

        effects.extend(self._react(owner, repo, comment_id, "rocket"))
        return CommandResult(success=True, message="Explanation posted", body=body, side_effects=tuple(effects))

    def follow_up(
        self,
        owner: str,
        repo: str,
        pr_number: int,
        comment_id: int,
        question: str,
        parent_comment_id: int | None = None,
    ) -> CommandResult:
        effects = self._react(owner, repo, comment_id, "eyes")
        try:
            key = self._resolve_key(owner, repo, pr_number, parent_comment_id)
            if key is None:
                logger.info("Answering without conversation context for %s/%s#%d", owner, repo, pr_number)
                explanation = self.explainer.explain_code(
                    question, question="Answer this question about the code in this PR"
                )
                answer = explanation.explanation
            else:
                answer = self._answer_in_thread(key, question, comment_id)

            body = format_answer_comment(question, answer)
            self.source.post_comment(owner, repo, pr_number, body)
        except PrsageError as e:
            logger.error("Failed to answer question for %s/%s#%d: %s", owner, repo, pr_number, e.message)
            effects.append(self._post_failure(owner, repo, pr_number, "Failed to answer question", e))
            return CommandResult(success=False, message=format_error_for_user(e), side_effects=tuple(effects))

        effects.extend(self._react(owner, repo, comment_id, "rocket"))
        return CommandResult(success=True, message="Answer posted", body=body, side_effects=tuple(effects))

    def cleanup(self) -> int:
        """Evict idle conversations; meant to be called by an external scheduler."""
        removed = self.store.sweep()
        if removed:
            logger.info("Removed %d expired conversation(s)", len(removed))
        return len(removed)

    def get_context(self, owner: str, repo: str, pr_number: int, thread_id: int | None = None):
        return self.store.get(ConversationKey(owner, repo, pr_number, thread_id))

    def _resolve_key(self, owner: str, repo: str, pr_number: int, parent_comment_id: int | None):
        candidates = []
        if parent_comment_id is not None:
            candidates.append(ConversationKey(owner, repo, pr_number, parent_comment_id))
        candidates.append(ConversationKey(owner, repo, pr_number))
        for key in candidates:
            if key in self.store:
                return key
        return None

    def _answer_in_thread(self, key: ConversationKey, question: str, comment_id: int) -> str:
        with self.store.lock(key):
            context = self.store.get(key)
            if context is None:
                # Swept between lookup and lock; answer without history.
                return self.explainer.explain_code(question).explanation
            answer = self.explainer.answer_follow_up(
                context.original_code,
                context.original_explanation,
                question,
                filename=context.filename,
                history=context.messages,
            )
            now = self.store.clock()
            context.messages.append(ConversationMessage("user", question, now, comment_id))
            context.messages.append(ConversationMessage("assistant", answer, now))
            context.last_activity_at = now
        return answer

    def _fetch_snippet(
        self,
        owner: str,
        repo: str,
        pr_number: int,
        filename: str | None,
        start_line: int | None,
        end_line: int | None,
    ) -> str | None:
        if not filename or not start_line or not end_line or end_line < start_line:
            return None
        return read_snippet(self.source, owner, repo, pr_number, filename, start_line, end_line)

    def _react(self, owner: str, repo: str, comment_id: int | None, reaction: str) -> list[NonFatal]:
        if comment_id is None:
            return []
        return [best_effort(f"reaction:{reaction}", self.source.add_reaction, owner, repo, comment_id, reaction)]

    def _post_failure(self, owner: str, repo: str, pr_number: int, prefix: str, error: PrsageError) -> NonFatal:
        body = f"❌ {prefix}: {format_error_for_user(error)}"
        return best_effort("failure-comment", self.source.post_comment, owner, repo, pr_number, body)


def is_follow_up_question(text: str) -> bool:
    """Heuristic: does this comment read like a question to the bot?"""
    text = text.strip()
    return any(pattern.search(text) for pattern in _QUESTION_PATTERNS)


def read_snippet(source, owner: str, repo: str, pr_number: int, filename: str, start_line: int, end_line: int) -> str:
    """Return lines [start_line, end_line] (1-based, inclusive) of a file at the PR head."""
    pr = source.get_pull_request(owner, repo, pr_number)
    content = source.get_file_content(owner, repo, filename, pr.head.sha)
    return "\n".join(content.split("\n")[start_line - 1 : end_line])

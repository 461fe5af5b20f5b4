"""Per-session audit trail of consent questions and answers."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from mcp_telemetry.errors import SessionNotFoundError

logger = logging.getLogger(__name__)


@dataclass
class UserFeedback:
    """One question/answer pair recorded during elicitation."""

    question: str
    answer: str
    timestamp: float = field(default_factory=time.time)


@dataclass
class FeedbackSession:
    """Feedback collected under a single session id, in call order."""

    session_id: str
    feedbacks: List[UserFeedback] = field(default_factory=list)
    created_at: float = field(default_factory=time.time)


class FeedbackLog:
    """Keyed collection of :class:`FeedbackSession` objects.

    Used to record why a consent decision was made. Not consulted when
    deciding whether telemetry may run.
    """

    def __init__(self) -> None:
        self._sessions: Dict[str, FeedbackSession] = {}
        self._lock = threading.Lock()

    def start_session(self, session_id: str) -> FeedbackSession:
        """Create the session if absent and return it."""
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                session = FeedbackSession(session_id=session_id)
                self._sessions[session_id] = session
                logger.debug("Feedback session started: %s", session_id)
            return session

    def record_feedback(self, session_id: str, question: str, answer: str) -> UserFeedback:
        """Append a question/answer pair to an active session.

        Raises :class:`SessionNotFoundError` if the session was never
        started or has been ended.
        """
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise SessionNotFoundError(session_id)
            entry = UserFeedback(question=question, answer=answer)
            session.feedbacks.append(entry)
            return entry

    def get_session(self, session_id: str) -> Optional[FeedbackSession]:
        with self._lock:
            return self._sessions.get(session_id)

    def end_session(self, session_id: str) -> None:
        with self._lock:
            if self._sessions.pop(session_id, None) is not None:
                logger.debug("Feedback session ended: %s", session_id)

    @property
    def active_sessions(self) -> int:
        with self._lock:
            return len(self._sessions)

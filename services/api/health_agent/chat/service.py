from __future__ import annotations

import logging
import secrets
import string
import time
from typing import Optional, Tuple

from health_agent.chat.sessions import ChatSessionStore
from health_agent.dispatch import chat_turn
from health_agent.errors import ErrorKind
from health_agent.models import ChatRole, Failure, HealthProfile, Outcome, Success, TaskKind

logger = logging.getLogger(__name__)

_SESSION_ALPHABET = string.ascii_lowercase + string.digits

store = ChatSessionStore()


def new_session_id() -> str:
    suffix = "".join(secrets.choice(_SESSION_ALPHABET) for _ in range(7))
    return f"chat_{int(time.time() * 1000)}_{suffix}"


def send_message(
    message: str,
    session_id: Optional[str] = None,
    profile: Optional[HealthProfile] = None,
    sessions: Optional[ChatSessionStore] = None,
) -> Tuple[str, Outcome]:
    """Run one chat turn and record it in the session history.

    The session lock is held for the whole turn, so two messages for the same
    session are answered in order and each sees the other's turns. The user
    turn is kept even when generation fails; the assistant turn is recorded
    only on success.
    """

    sessions = sessions or store
    sid = session_id.strip() if session_id and session_id.strip() else new_session_id()
    if not message or not message.strip():
        return sid, Failure(
            task=TaskKind.CHAT_TURN,
            kind=ErrorKind.INVALID_INPUT,
            detail="Message cannot be empty.",
        )

    with sessions.locked(sid):
        history = sessions.get_context(sid)
        sessions.append_turn(sid, ChatRole.USER, message.strip())
        outcome = chat_turn(sid, message.strip(), history=history, profile=profile)
        if isinstance(outcome, Success):
            sessions.append_turn(sid, ChatRole.ASSISTANT, outcome.value.reply)
        else:
            logger.info("Chat turn for %s failed: %s", sid, outcome.kind.value)
    return sid, outcome

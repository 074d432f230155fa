"""Task dispatchers.

``dispatch`` drives one request through the generation graph and always
returns a tagged ``Success`` or ``Failure``; pipeline errors never escape as
exceptions. The convenience functions below build the request for a single
task kind.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable, Optional

from health_agent.errors import ErrorKind, MalformedResponse, PipelineError
from health_agent.graph.build import run_pipeline
from health_agent.models import (
    DEFAULT_PROFILE_QUESTION,
    ChatTurn,
    Failure,
    HealthProfile,
    Outcome,
    Success,
    TaskKind,
    TaskRequest,
)
from health_agent.tools.redact import preview

logger = logging.getLogger(__name__)


def _failure(request: TaskRequest, exc: PipelineError, raw_text: Optional[str], debug: dict) -> Failure:
    if raw_text is None and isinstance(exc, MalformedResponse):
        raw_text = exc.raw_text
    return Failure(
        task=request.kind,
        kind=exc.kind,
        detail=str(exc),
        raw_text=raw_text,
        debug=debug,
    )


def dispatch(request: TaskRequest) -> Outcome:
    if request.reference_time is None:
        request = request.model_copy(update={"reference_time": datetime.now()})
    logger.info(
        "Dispatching %s task (instruction=%r)",
        request.kind.value,
        preview(request.instruction),
    )

    try:
        state = run_pipeline(request)
    except PipelineError as exc:
        return _failure(request, exc, None, {})

    debug = state.get("debug") or {}
    error = state.get("error")
    if error is not None:
        raw = state.get("raw")
        logger.warning("%s task failed: %s", request.kind.value, error.kind.value)
        return _failure(request, error, raw.text if raw else None, debug)

    logger.info("%s task succeeded", request.kind.value)
    return Success(task=request.kind, value=state["result"], debug=debug)


def failure_status(kind: ErrorKind) -> int:
    return {
        ErrorKind.INVALID_INPUT: 400,
        ErrorKind.PAST_DATE_REQUESTED: 422,
        ErrorKind.SCHEMA_VIOLATION: 502,
        ErrorKind.MALFORMED_RESPONSE: 502,
        ErrorKind.PROVIDER_UNAVAILABLE: 503,
    }[kind]


# ---- convenience wrappers ----


def generate_diet_plan(
    profile: Optional[HealthProfile] = None, instruction: Optional[str] = None
) -> Outcome:
    return dispatch(TaskRequest(kind=TaskKind.DIET, profile=profile, instruction=instruction))


def generate_exercise_plan(
    profile: Optional[HealthProfile] = None,
    body_part: Optional[str] = None,
    instruction: Optional[str] = None,
) -> Outcome:
    return dispatch(
        TaskRequest(
            kind=TaskKind.EXERCISE, profile=profile, body_part=body_part, instruction=instruction
        )
    )


def generate_yoga_plan(
    profile: Optional[HealthProfile] = None,
    body_part: Optional[str] = None,
    condition: Optional[str] = None,
    instruction: Optional[str] = None,
) -> Outcome:
    return dispatch(
        TaskRequest(
            kind=TaskKind.YOGA,
            profile=profile,
            body_part=body_part,
            condition=condition,
            instruction=instruction,
        )
    )


def generate_disease_guidance(
    condition: str, profile: Optional[HealthProfile] = None
) -> Outcome:
    return dispatch(
        TaskRequest(kind=TaskKind.DISEASE_GUIDANCE, profile=profile, condition=condition)
    )


def generate_goal_plan(
    goal: str, profile: Optional[HealthProfile] = None, duration: str = "4 weeks"
) -> Outcome:
    return dispatch(
        TaskRequest(kind=TaskKind.GOAL_PLAN, profile=profile, goal=goal, duration=duration)
    )


def analyze_prescription(image: bytes, media_type: Optional[str] = None) -> Outcome:
    return dispatch(
        TaskRequest(kind=TaskKind.PRESCRIPTION_OCR, attachment=image, media_type=media_type)
    )


def extract_appointment(text: str, reference_time: Optional[datetime] = None) -> Outcome:
    return dispatch(
        TaskRequest(
            kind=TaskKind.APPOINTMENT_INTENT, instruction=text, reference_time=reference_time
        )
    )


def chat_turn(
    session_id: str,
    message: str,
    history: Iterable[ChatTurn] = (),
    profile: Optional[HealthProfile] = None,
) -> Outcome:
    return dispatch(
        TaskRequest(
            kind=TaskKind.CHAT_TURN,
            session_id=session_id,
            instruction=message,
            history=tuple(history),
            profile=profile,
        )
    )


def assess_health(profile: Optional[HealthProfile]) -> Outcome:
    return dispatch(TaskRequest(kind=TaskKind.HEALTH_ASSESSMENT, profile=profile))


# Provider-side failures during onboarding fall back to a fixed first question
_PROFILE_QUESTION_FALLBACK = {
    ErrorKind.MALFORMED_RESPONSE,
    ErrorKind.SCHEMA_VIOLATION,
    ErrorKind.PROVIDER_UNAVAILABLE,
}


def next_profile_question(profile: Optional[HealthProfile] = None, step: int = 0) -> Outcome:
    outcome = dispatch(TaskRequest(kind=TaskKind.PROFILE_QUESTION, profile=profile, step=step))
    if isinstance(outcome, Failure) and outcome.kind in _PROFILE_QUESTION_FALLBACK:
        logger.warning("Profile question failed (%s); using the default question", outcome.kind.value)
        return Success(
            task=TaskKind.PROFILE_QUESTION,
            value=DEFAULT_PROFILE_QUESTION,
            debug={**outcome.debug, "fallback": outcome.kind.value},
        )
    return outcome

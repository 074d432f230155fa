"""Per-task wiring: result model, identity fields, entry checks and business rules."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple, Type

from pydantic import BaseModel

from health_agent.config import settings
from health_agent.errors import InvalidInput, PastDateRequested, SchemaViolation
from health_agent.models import (
    MEDICAL_DISCLAIMER,
    AppointmentIntent,
    ChatReply,
    DietPlan,
    DiseaseGuidance,
    ExercisePlan,
    GoalPlan,
    HealthAssessment,
    HealthProfile,
    PrescriptionExtract,
    ProfileQuestion,
    TaskKind,
    TaskRequest,
    YogaPlan,
)

HEALTH_KEYWORDS = (
    "symptom",
    "pain",
    "disease",
    "condition",
    "treatment",
    "medication",
    "medicine",
    "diagnosis",
    "doctor",
    "health",
    "illness",
    "sick",
    "blood pressure",
    "diabetes",
    "heart",
    "cancer",
    "infection",
)

EMERGENCY_NOTICE = (
    "If this is a medical emergency, call your local emergency number or go to "
    "the nearest emergency department now."
)

_IMAGE_SIGNATURES: Tuple[Tuple[bytes, str], ...] = (
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
)


def sniff_image_type(data: bytes) -> Optional[str]:
    for signature, media_type in _IMAGE_SIGNATURES:
        if data.startswith(signature):
            return media_type
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    return None


def _blank(value: Optional[str]) -> bool:
    return not value or not value.strip()


# ---- entry checks ----


def _no_check(request: TaskRequest) -> None:
    return None


def _require_condition(request: TaskRequest) -> None:
    if _blank(request.condition):
        raise InvalidInput("A condition is required for disease guidance.")


def _require_goal(request: TaskRequest) -> None:
    if _blank(request.goal):
        raise InvalidInput("A goal is required for a goal plan.")


def _require_instruction(request: TaskRequest) -> None:
    if _blank(request.instruction):
        raise InvalidInput("Please describe the appointment you want to book.")


def _require_session(request: TaskRequest) -> None:
    if _blank(request.session_id):
        raise InvalidInput("A chat session id is required.")
    if _blank(request.instruction):
        raise InvalidInput("Message cannot be empty.")


def _require_profile(request: TaskRequest) -> None:
    if request.profile is None:
        raise InvalidInput("A health profile is required for a health assessment.")


def _require_step(request: TaskRequest) -> None:
    if request.step < 0:
        raise InvalidInput("The onboarding step cannot be negative.")


def _require_image(request: TaskRequest) -> None:
    data = request.attachment
    if not data:
        raise InvalidInput("A prescription image is required.")
    limit = settings.max_attachment_bytes
    if len(data) > limit:
        raise InvalidInput(f"Prescription image exceeds the {limit} byte limit.")
    media_type = (request.media_type or "").strip().lower()
    if media_type and not media_type.startswith("image/"):
        raise InvalidInput(f"Unsupported attachment type '{media_type}'; an image is required.")
    if not media_type and sniff_image_type(data) is None:
        raise InvalidInput("Attachment is not a recognised image.")


# ---- business rules ----


def _keep(request: TaskRequest, result: Any) -> Any:
    return result


def _require_meals(request: TaskRequest, result: DietPlan) -> DietPlan:
    if not result.meals:
        raise SchemaViolation("meals", "Generated diet plan has no meals.")
    return result


def _require_exercises(request: TaskRequest, result: ExercisePlan) -> ExercisePlan:
    if not result.exercises:
        raise SchemaViolation("exercises", "Generated exercise plan has no exercises.")
    return result


def _require_poses(request: TaskRequest, result: YogaPlan) -> YogaPlan:
    if not result.poses:
        raise SchemaViolation("poses", "Generated yoga plan has no poses.")
    return result


def _require_instructions(request: TaskRequest, result: DiseaseGuidance) -> DiseaseGuidance:
    if not result.instructions:
        raise SchemaViolation("instructions", "Generated guidance has no instructions.")
    return result


def _require_plan_content(request: TaskRequest, result: GoalPlan) -> GoalPlan:
    if not result.milestones and result.weekly_plan.is_empty():
        raise SchemaViolation(
            "milestones", "Generated goal plan has neither milestones nor a weekly plan."
        )
    return result


def _reject_past_dates(request: TaskRequest, result: AppointmentIntent) -> AppointmentIntent:
    now = request.reference_time
    if now is None or result.date is None:
        return result
    if result.date < now.date():
        raise PastDateRequested(result.date)
    if result.date == now.date() and result.time is not None and result.time < now.time():
        raise PastDateRequested(result.time)
    return result


def _require_profile_field(request: TaskRequest, result: ProfileQuestion) -> ProfileQuestion:
    if result.field not in HealthProfile.model_fields:
        raise SchemaViolation("field", f"Unknown profile field '{result.field}'.")
    return result


def needs_disclaimer(message: str, reply: str) -> bool:
    combined = f"{message} {reply}".lower()
    return any(keyword in combined for keyword in HEALTH_KEYWORDS)


def _annotate_reply(request: TaskRequest, result: ChatReply) -> ChatReply:
    sections = [result.reply.strip()]
    if result.urgent and EMERGENCY_NOTICE not in result.reply:
        sections.append(EMERGENCY_NOTICE)
    if needs_disclaimer(request.instruction or "", result.reply) and MEDICAL_DISCLAIMER not in result.reply:
        sections.append(MEDICAL_DISCLAIMER)
    reply = "\n\n".join(section for section in sections if section)
    if reply == result.reply:
        return result
    return result.model_copy(update={"reply": reply})


# ---- payload defaults applied before validation ----


def _no_defaults(request: TaskRequest) -> Dict[str, Any]:
    return {}


def _appointment_defaults(request: TaskRequest) -> Dict[str, Any]:
    return {"reason": (request.instruction or "").strip()}


@dataclass(frozen=True)
class TaskSpec:
    kind: TaskKind
    model: Type[BaseModel]
    required: Tuple[str, ...] = ()
    check: Callable[[TaskRequest], None] = _no_check
    rule: Callable[[TaskRequest, Any], Any] = _keep
    defaults: Callable[[TaskRequest], Dict[str, Any]] = _no_defaults


TASKS: Dict[TaskKind, TaskSpec] = {
    TaskKind.DIET: TaskSpec(TaskKind.DIET, DietPlan, rule=_require_meals),
    TaskKind.EXERCISE: TaskSpec(TaskKind.EXERCISE, ExercisePlan, rule=_require_exercises),
    TaskKind.YOGA: TaskSpec(TaskKind.YOGA, YogaPlan, rule=_require_poses),
    TaskKind.DISEASE_GUIDANCE: TaskSpec(
        TaskKind.DISEASE_GUIDANCE,
        DiseaseGuidance,
        required=("condition",),
        check=_require_condition,
        rule=_require_instructions,
    ),
    TaskKind.GOAL_PLAN: TaskSpec(
        TaskKind.GOAL_PLAN,
        GoalPlan,
        required=("goalName",),
        check=_require_goal,
        rule=_require_plan_content,
    ),
    TaskKind.PRESCRIPTION_OCR: TaskSpec(
        TaskKind.PRESCRIPTION_OCR, PrescriptionExtract, check=_require_image
    ),
    TaskKind.APPOINTMENT_INTENT: TaskSpec(
        TaskKind.APPOINTMENT_INTENT,
        AppointmentIntent,
        required=("reason",),
        check=_require_instruction,
        rule=_reject_past_dates,
        defaults=_appointment_defaults,
    ),
    TaskKind.CHAT_TURN: TaskSpec(
        TaskKind.CHAT_TURN,
        ChatReply,
        required=("reply",),
        check=_require_session,
        rule=_annotate_reply,
    ),
    TaskKind.HEALTH_ASSESSMENT: TaskSpec(
        TaskKind.HEALTH_ASSESSMENT, HealthAssessment, check=_require_profile
    ),
    TaskKind.PROFILE_QUESTION: TaskSpec(
        TaskKind.PROFILE_QUESTION,
        ProfileQuestion,
        required=("question", "field"),
        check=_require_step,
        rule=_require_profile_field,
    ),
}


def task_spec(kind: TaskKind | str) -> TaskSpec:
    try:
        return TASKS[TaskKind(kind)]
    except ValueError as exc:
        raise InvalidInput(f"Unknown task kind '{kind}'.") from exc

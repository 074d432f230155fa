import base64
import binascii
import datetime as _dt
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse, JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from scalar_fastapi import Layout, Theme, get_scalar_api_reference
from starlette.routing import Route

from health_agent.appointments.reconcile import find_doctor, reconcile
from health_agent.chat import service as chat_service
from health_agent.config.logging import (
    clear_request_id,
    configure_logging,
    get_request_id,
    set_request_id,
)
from health_agent.dispatch import (
    dispatch,
    extract_appointment,
    failure_status,
    next_profile_question,
)
from health_agent.errors import InvalidInput, PipelineError
from health_agent.models import (
    AppointmentIntent,
    Booking,
    Doctor,
    Failure,
    HealthProfile,
    Outcome,
    Success,
    TaskKind,
    TaskRequest,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    app.state.last_trace = []
    app.state.last_run_completed_at = None
    app.state.last_request_id = None
    yield


app = FastAPI(title="Health Agent API", lifespan=lifespan, docs_url=None, redoc_url=None)


@app.get("/docs", include_in_schema=False)
def scalar_docs() -> HTMLResponse:
    return get_scalar_api_reference(
        openapi_url=app.openapi_url,
        title="Health Agent API Docs",
        layout=Layout.MODERN,
        theme=Theme.DEEP_SPACE,
        hide_models=True,
        hide_client_button=True,
        hide_download_button=True,
    )


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    rid = set_request_id(request.headers.get("X-Request-ID"))
    try:
        response = await call_next(request)
    finally:
        clear_request_id()
    response.headers["X-Request-ID"] = rid
    return response


class _Body(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TaskBody(_Body):
    profile: Optional[HealthProfile] = None
    instruction: Optional[str] = None
    attachment: Optional[str] = Field(default=None, description="Base64 encoded image")
    media_type: Optional[str] = None
    body_part: Optional[str] = None
    condition: Optional[str] = None
    goal: Optional[str] = None
    duration: str = "4 weeks"
    session_id: Optional[str] = None
    step: int = 0
    reference_time: Optional[_dt.datetime] = None


class ChatBody(_Body):
    message: str
    session_id: Optional[str] = None
    profile: Optional[HealthProfile] = None


class ProfileQuestionBody(_Body):
    profile: Optional[HealthProfile] = None
    step: int = 0


class ExtractBody(_Body):
    text: str
    reference_time: Optional[_dt.datetime] = None
    doctors: List[Doctor] = Field(default_factory=list)


class AvailabilityBody(_Body):
    intent: Optional[AppointmentIntent] = None
    date: Optional[_dt.date] = None
    time: Optional[_dt.time] = None
    bookings: List[Booking] = Field(default_factory=list)
    reference_time: Optional[_dt.datetime] = None


def _decode_attachment(data: Optional[str]) -> Optional[bytes]:
    if not data:
        return None
    if data.startswith("data:") and "," in data:
        data = data.split(",", 1)[1]
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidInput("Attachment is not valid base64.") from exc


def _record_run_metadata(outcome: Outcome) -> None:
    app.state.last_trace = list(outcome.debug.get("trace") or [])
    app.state.last_run_completed_at = _dt.datetime.now().isoformat()
    app.state.last_request_id = get_request_id()


def _error_response(exc: PipelineError, task: Optional[TaskKind] = None) -> JSONResponse:
    failure = Failure(task=task, kind=exc.kind, detail=str(exc))
    return _outcome_response(failure)


def _outcome_response(outcome: Outcome, extra: Optional[Dict[str, Any]] = None) -> JSONResponse:
    content = outcome.model_dump(by_alias=True, mode="json")
    if extra:
        content.update(extra)
    status = 200 if isinstance(outcome, Success) else failure_status(outcome.kind)
    return JSONResponse(status_code=status, content=content)


@app.get("/healthz")
def healthz():
    return {"ok": True}


@app.get("/api/debug/trace")
def debug_trace():
    return {
        "trace": getattr(app.state, "last_trace", []),
        "completed_at": getattr(app.state, "last_run_completed_at", None),
        "request_id": getattr(app.state, "last_request_id", None),
    }


@app.post("/api/tasks/{kind}")
def run_task(kind: str, body: TaskBody) -> JSONResponse:
    try:
        task = TaskKind(kind)
    except ValueError:
        return _error_response(InvalidInput(f"Unknown task kind '{kind}'."))
    try:
        attachment = _decode_attachment(body.attachment)
    except InvalidInput as exc:
        return _error_response(exc, task)

    request = TaskRequest(
        kind=task,
        profile=body.profile,
        instruction=body.instruction,
        attachment=attachment,
        media_type=body.media_type,
        body_part=body.body_part,
        condition=body.condition,
        goal=body.goal,
        duration=body.duration,
        session_id=body.session_id,
        step=body.step,
        reference_time=body.reference_time,
    )
    outcome = dispatch(request)
    _record_run_metadata(outcome)
    return _outcome_response(outcome)


@app.post("/api/chat")
def chat(body: ChatBody) -> JSONResponse:
    session_id, outcome = chat_service.send_message(
        body.message, session_id=body.session_id, profile=body.profile
    )
    _record_run_metadata(outcome)
    return _outcome_response(outcome, {"sessionId": session_id})


@app.get("/api/chat/{session_id}")
def chat_history(session_id: str):
    turns = chat_service.store.get_context(session_id)
    return {
        "sessionId": session_id,
        "turns": [turn.model_dump(by_alias=True, mode="json") for turn in turns],
    }


@app.post("/api/profile/next-question")
def profile_next_question(body: ProfileQuestionBody) -> JSONResponse:
    outcome = next_profile_question(body.profile, step=body.step)
    _record_run_metadata(outcome)
    return _outcome_response(outcome)


@app.post("/api/appointments/extract")
def appointment_extract(body: ExtractBody) -> JSONResponse:
    outcome = extract_appointment(body.text, reference_time=body.reference_time)
    _record_run_metadata(outcome)
    extra: Dict[str, Any] = {}
    if isinstance(outcome, Success) and body.doctors:
        doctor = find_doctor(outcome.value.doctor_name, body.doctors)
        extra["doctor"] = doctor.model_dump(by_alias=True, mode="json") if doctor else None
    return _outcome_response(outcome, extra)


@app.post("/api/appointments/availability")
def appointment_availability(body: AvailabilityBody) -> JSONResponse:
    intent = body.intent
    if intent is None:
        intent = AppointmentIntent(reason="Availability lookup", date=body.date, time=body.time)
    try:
        result = reconcile(intent, body.bookings, reference_time=body.reference_time)
    except PipelineError as exc:
        return _error_response(exc, TaskKind.APPOINTMENT_INTENT)
    return JSONResponse(content=result.model_dump(by_alias=True, mode="json"))


@app.get("/__routes")
def routes() -> List[str]:
    return [r.path for r in app.routes if isinstance(r, Route)]

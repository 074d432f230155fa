"""Value objects exchanged across the generation pipeline.

Domain results are built from untrusted model output, so every field runs
through a coercion helper before pydantic checks its type. JSON field names
are camelCase (the shape the prompts ask for); attributes are snake_case.
"""

from __future__ import annotations

import datetime as _dt
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Tuple, Union

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    computed_field,
    model_validator,
)
from pydantic.alias_generators import to_camel, to_snake

from health_agent.errors import ErrorKind
from health_agent.pipeline.normalize import (
    clamp,
    coerce_bool,
    coerce_enum,
    coerce_int,
    coerce_mapping,
    coerce_number,
    coerce_object_list,
    coerce_optional_number,
    coerce_optional_text,
    coerce_text,
    coerce_text_list,
    coerce_time_range,
    day_part_range,
    parse_date,
    parse_time,
)

MEDICAL_DISCLAIMER = (
    "Important: This information is for educational purposes only and is not a "
    "substitute for professional medical advice, diagnosis, or treatment. Always "
    "consult with a qualified healthcare provider for medical concerns."
)


class TaskKind(str, Enum):
    DIET = "diet"
    EXERCISE = "exercise"
    YOGA = "yoga"
    DISEASE_GUIDANCE = "disease_guidance"
    GOAL_PLAN = "goal_plan"
    PRESCRIPTION_OCR = "prescription_ocr"
    APPOINTMENT_INTENT = "appointment_intent"
    CHAT_TURN = "chat_turn"
    HEALTH_ASSESSMENT = "health_assessment"
    PROFILE_QUESTION = "profile_question"


class DietPreference(str, Enum):
    VEGETARIAN = "vegetarian"
    VEGAN = "vegan"
    NON_VEGETARIAN = "non_vegetarian"
    PESCATARIAN = "pescatarian"
    EGGETARIAN = "eggetarian"
    KETO = "keto"
    OTHER = "other"


class ActivityLevel(str, Enum):
    SEDENTARY = "sedentary"
    LIGHTLY_ACTIVE = "lightly_active"
    MODERATELY_ACTIVE = "moderately_active"
    VERY_ACTIVE = "very_active"
    EXTREMELY_ACTIVE = "extremely_active"
    UNKNOWN = "unknown"


class Severity(str, Enum):
    MILD = "mild"
    MODERATE = "moderate"
    SEVERE = "severe"
    UNKNOWN = "unknown"


class MedicineType(str, Enum):
    TABLET = "tablet"
    CAPSULE = "capsule"
    SYRUP = "syrup"
    INJECTION = "injection"
    OINTMENT = "ointment"
    DROPS = "drops"
    INHALER = "inhaler"
    POWDER = "powder"
    OTHER = "other"


class Priority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    OTHER = "other"


class ScoreCategory(str, Enum):
    POOR = "Poor"
    FAIR = "Fair"
    GOOD = "Good"
    EXCELLENT = "Excellent"


class ChatRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class BookingStatus(str, Enum):
    CONFIRMED = "CONFIRMED"
    PENDING = "PENDING"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


_DIET_ALIASES = {
    "veg": "vegetarian",
    "non_veg": "non_vegetarian",
    "nonveg": "non_vegetarian",
    "nonvegetarian": "non_vegetarian",
    "omnivore": "non_vegetarian",
    "pescetarian": "pescatarian",
    "ketogenic": "keto",
}
_ACTIVITY_ALIASES = {
    "light": "lightly_active",
    "lightly": "lightly_active",
    "moderate": "moderately_active",
    "moderately": "moderately_active",
    "active": "very_active",
    "extreme": "extremely_active",
    "inactive": "sedentary",
}
_SEVERITY_ALIASES = {"low": "mild", "medium": "moderate", "high": "severe"}
_MEDICINE_ALIASES = {
    "tab": "tablet",
    "tabs": "tablet",
    "tablets": "tablet",
    "cap": "capsule",
    "caps": "capsule",
    "capsules": "capsule",
    "suspension": "syrup",
    "liquid": "syrup",
    "cream": "ointment",
    "gel": "ointment",
    "eye_drops": "drops",
    "ear_drops": "drops",
    "injectable": "injection",
    "sachet": "powder",
}
_PRIORITY_ALIASES = {"urgent": "high", "normal": "medium"}


def _enum_validator(enum_cls, fallback, aliases=None) -> BeforeValidator:
    return BeforeValidator(lambda v: coerce_enum(v, enum_cls, fallback, aliases))


Text = Annotated[str, BeforeValidator(coerce_text)]
OptionalText = Annotated[Optional[str], BeforeValidator(coerce_optional_text)]
TextList = Annotated[List[str], BeforeValidator(coerce_text_list)]
Number = Annotated[float, BeforeValidator(coerce_number)]
Count = Annotated[int, BeforeValidator(coerce_int)]
Price = Annotated[Optional[float], BeforeValidator(coerce_optional_number)]
OptionalDate = Annotated[Optional[_dt.date], BeforeValidator(parse_date)]
Flag = Annotated[bool, BeforeValidator(coerce_bool)]

DietPreferenceField = Annotated[
    DietPreference, _enum_validator(DietPreference, DietPreference.OTHER, _DIET_ALIASES)
]
ActivityLevelField = Annotated[
    ActivityLevel,
    _enum_validator(ActivityLevel, ActivityLevel.UNKNOWN, _ACTIVITY_ALIASES),
]
SeverityField = Annotated[
    Severity, _enum_validator(Severity, Severity.UNKNOWN, _SEVERITY_ALIASES)
]
MedicineTypeField = Annotated[
    MedicineType,
    _enum_validator(MedicineType, MedicineType.OTHER, _MEDICINE_ALIASES),
]
PriorityField = Annotated[
    Priority, _enum_validator(Priority, Priority.OTHER, _PRIORITY_ALIASES)
]


def _objects(key: str = "name") -> BeforeValidator:
    def coerce(value: Any) -> Any:
        if isinstance(value, (list, tuple)) and all(isinstance(v, BaseModel) for v in value):
            return list(value)
        return coerce_object_list(value, key)

    return BeforeValidator(coerce)


_Mapping = BeforeValidator(lambda v: v if isinstance(v, BaseModel) else coerce_mapping(v))


class _Schema(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )


# ==================== REQUEST SIDE ====================


class HealthProfile(_Schema):
    age: Optional[int] = None
    gender: OptionalText = None
    height_cm: Annotated[Optional[float], BeforeValidator(coerce_optional_number)] = None
    weight_kg: Annotated[Optional[float], BeforeValidator(coerce_optional_number)] = None
    existing_conditions: TextList = Field(default_factory=list)
    allergies: TextList = Field(default_factory=list)
    injuries: TextList = Field(default_factory=list)
    diet_preference: Optional[DietPreferenceField] = None
    activity_level: Optional[ActivityLevelField] = None
    sleep_quality: OptionalText = None
    stress_level: OptionalText = None
    primary_goal: OptionalText = None
    target_weight_kg: Annotated[
        Optional[float], BeforeValidator(coerce_optional_number)
    ] = None

    @property
    def bmi(self) -> Optional[float]:
        if not self.height_cm or not self.weight_kg:
            return None
        return self.weight_kg / (self.height_cm / 100) ** 2


class ChatTurn(_Schema):
    role: ChatRole
    text: str


class TaskRequest(_Schema):
    kind: TaskKind
    profile: Optional[HealthProfile] = None
    instruction: Optional[str] = None
    attachment: Optional[bytes] = None
    media_type: Optional[str] = None
    body_part: Optional[str] = None
    condition: Optional[str] = None
    goal: Optional[str] = None
    duration: str = "4 weeks"
    session_id: Optional[str] = None
    history: Tuple[ChatTurn, ...] = ()
    # Onboarding step for profile questions
    step: int = 0
    reference_time: Optional[_dt.datetime] = None


class PromptSpec(_Schema):
    kind: TaskKind
    text: str
    image: Optional[bytes] = None
    media_type: Optional[str] = None


class RawModelResponse(_Schema):
    text: str
    prompt: PromptSpec


# ==================== DIET ====================


class Macros(_Schema):
    protein: Number = 0.0
    carbs: Number = 0.0
    fats: Number = 0.0


class Meal(_Schema):
    name: Text = "Unknown"
    time: Text = "Unknown"
    items: TextList = Field(default_factory=list)
    calories: Number = 0.0


class DietPlan(_Schema):
    diet_type: DietPreferenceField = DietPreference.OTHER
    daily_calories: Number = 0.0
    macros: Annotated[Macros, _Mapping] = Field(default_factory=Macros)
    meals: Annotated[List[Meal], _objects()] = Field(default_factory=list)
    foods_to_include: TextList = Field(default_factory=list)
    foods_to_avoid: TextList = Field(default_factory=list)
    hydration_tips: TextList = Field(default_factory=list)
    special_notes: TextList = Field(default_factory=list)


# ==================== EXERCISE ====================


class TimedActivity(_Schema):
    name: Text = "Unknown"
    duration: Text = "Unknown"


class Exercise(_Schema):
    name: Text = "Unknown"
    target_muscle: Text = "Unknown"
    sets: Count = 0
    reps: Text = "Unknown"
    rest_seconds: Count = 0
    form_tips: TextList = Field(default_factory=list)
    modifications: Text = "Unknown"


class ExercisePlan(_Schema):
    level: ActivityLevelField = ActivityLevel.UNKNOWN
    warmup: Annotated[List[TimedActivity], _objects()] = Field(default_factory=list)
    exercises: Annotated[List[Exercise], _objects()] = Field(default_factory=list)
    cooldown: Annotated[List[TimedActivity], _objects()] = Field(default_factory=list)
    safety_warnings: TextList = Field(default_factory=list)
    total_duration: Text = "Unknown"


# ==================== YOGA ====================


class YogaPose(_Schema):
    sanskrit_name: Text = "Unknown"
    english_name: Text = "Unknown"
    target_area: Text = "Unknown"
    benefits: TextList = Field(default_factory=list)
    instructions: TextList = Field(default_factory=list)
    duration: Text = "Unknown"
    breathing_pattern: Text = "Unknown"
    contraindications: TextList = Field(default_factory=list)
    modifications: Text = "Unknown"


class YogaPlan(_Schema):
    poses: Annotated[List[YogaPose], _objects("englishName")] = Field(
        default_factory=list
    )
    sequence: TextList = Field(default_factory=list)
    total_duration: Text = "Unknown"
    general_tips: TextList = Field(default_factory=list)


# ==================== DISEASE GUIDANCE ====================


class DiseaseGuidance(_Schema):
    condition: Text
    overview: Text = "Unknown"
    severity: SeverityField = Severity.UNKNOWN
    instructions: TextList = Field(default_factory=list)
    lifestyle_modifications: TextList = Field(default_factory=list)
    dietary_recommendations: TextList = Field(default_factory=list)
    exercise_suggestions: TextList = Field(default_factory=list)
    stress_management: TextList = Field(default_factory=list)
    warning_signs: TextList = Field(default_factory=list)
    when_to_seek_care: TextList = Field(default_factory=list)
    disclaimer: Text = MEDICAL_DISCLAIMER


# ==================== GOAL PLAN ====================


class Milestone(_Schema):
    title: Text = "Unknown"
    description: Text = "Unknown"
    timeframe: Text = "Unknown"


class WeeklyPlan(_Schema):
    monday: TextList = Field(default_factory=list)
    tuesday: TextList = Field(default_factory=list)
    wednesday: TextList = Field(default_factory=list)
    thursday: TextList = Field(default_factory=list)
    friday: TextList = Field(default_factory=list)
    saturday: TextList = Field(default_factory=list)
    sunday: TextList = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not any(getattr(self, day) for day in type(self).model_fields)


class GoalDiet(_Schema):
    guidelines: TextList = Field(default_factory=list)
    calories: Text = "Unknown"
    macros: Text = "Unknown"


class GoalExercise(_Schema):
    routines: TextList = Field(default_factory=list)
    frequency: Text = "Unknown"


class GoalPlan(_Schema):
    goal_name: Text
    overview: Text = "Unknown"
    timeline: Text = "Unknown"
    milestones: Annotated[List[Milestone], _objects("title")] = Field(
        default_factory=list
    )
    weekly_plan: Annotated[WeeklyPlan, _Mapping] = Field(default_factory=WeeklyPlan)
    diet_plan: Annotated[GoalDiet, _Mapping] = Field(default_factory=GoalDiet)
    exercise_plan: Annotated[GoalExercise, _Mapping] = Field(
        default_factory=GoalExercise
    )
    lifestyle_changes: TextList = Field(default_factory=list)
    tracking_tips: TextList = Field(default_factory=list)
    tips_for_success: TextList = Field(default_factory=list)
    potential_challenges: TextList = Field(default_factory=list)


# ==================== PRESCRIPTION OCR ====================


class Medicine(_Schema):
    name: Text = "Unknown"
    dosage: Text = "Unknown"
    frequency: Text = "Unknown"
    duration: Text = "Unknown"
    type: MedicineTypeField = MedicineType.OTHER
    price: Price = None


class PrescriptionExtract(_Schema):
    doctor: Text = "Unknown"
    date: OptionalDate = None
    patient: Text = "Unknown"
    diagnosis: Text = "Unknown"
    medicines: Annotated[List[Medicine], _objects()] = Field(default_factory=list)
    instructions: TextList = Field(default_factory=list)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def estimated_total(self) -> Optional[float]:
        prices = [m.price for m in self.medicines if m.price is not None]
        return round(sum(prices), 2) if prices else None


# ==================== APPOINTMENT ====================


class TimeRange(_Schema):
    start: _dt.time
    end: _dt.time


class AppointmentIntent(_Schema):
    specialization: OptionalText = None
    doctor_name: OptionalText = None
    date: OptionalDate = None
    time: Annotated[Optional[_dt.time], BeforeValidator(parse_time)] = None
    time_range: Annotated[Optional[TimeRange], BeforeValidator(coerce_time_range)] = None
    reason: Text
    confidence: Number = 0.3

    @model_validator(mode="before")
    @classmethod
    def _resolve_day_parts(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        raw_time = data.get("time")
        part = day_part_range(raw_time)
        range_key = "timeRange" if "timeRange" in data else "time_range"
        if part and not coerce_time_range(data.get(range_key)):
            data[range_key] = {"start": part[0], "end": part[1]}
        # Confidence given as a percentage ("85", "85%")
        confidence = coerce_number(data.get("confidence"), 0.3)
        if 1.0 < confidence <= 100.0:
            confidence = confidence / 100.0
        data["confidence"] = clamp(confidence, 0.0, 1.0)
        return data


class Booking(_Schema):
    start: _dt.time
    end: Optional[_dt.time] = None
    status: BookingStatus = BookingStatus.CONFIRMED


class AvailabilitySlot(_Schema):
    date: _dt.date
    start: _dt.time
    end: _dt.time


class Reconciliation(_Schema):
    date: Optional[_dt.date] = None
    slots: List[AvailabilitySlot] = Field(default_factory=list)
    advisory: Optional[str] = None
    requested_time_available: Optional[bool] = None


class Doctor(_Schema):
    id: str
    name: str
    specialization: Optional[str] = None
    is_active: bool = True


# ==================== CHAT ====================


class ChatReply(_Schema):
    reply: Text
    suggestions: TextList = Field(default_factory=list)
    urgent: Flag = False


# ==================== HEALTH ASSESSMENT ====================


def category_for(score: float) -> ScoreCategory:
    if score <= 25:
        return ScoreCategory.POOR
    if score <= 50:
        return ScoreCategory.FAIR
    if score <= 75:
        return ScoreCategory.GOOD
    return ScoreCategory.EXCELLENT


def _score(value: Any) -> float:
    score = clamp(coerce_number(value, 50.0), 0.0, 100.0)
    # Zero means "no data" in practice; the neutral score is 50
    return 50.0 if score == 0 else score


class ScoreBlock(_Schema):
    score: float = 50.0
    category: ScoreCategory = ScoreCategory.FAIR
    recommendation: Text = "Unknown"

    @model_validator(mode="before")
    @classmethod
    def _derive_category(cls, data: Any) -> Any:
        if isinstance(data, BaseModel):
            return data
        if not isinstance(data, dict):
            data = {"score": data}
        score = _score(data.get("score"))
        category = coerce_enum(data.get("category"), ScoreCategory, None)  # type: ignore[arg-type]
        return {**data, "score": score, "category": category or category_for(score)}


class BmiScore(ScoreBlock):
    value: Number = 0.0


class OverallScore(ScoreBlock):
    summary: Text = "Unknown"


class Recommendation(_Schema):
    title: Text = "Unknown"
    description: Text = "Unknown"
    priority: PriorityField = Priority.OTHER


class HealthAssessment(_Schema):
    bmi: BmiScore = Field(default_factory=BmiScore)
    activity: ScoreBlock = Field(default_factory=ScoreBlock)
    sleep: ScoreBlock = Field(default_factory=ScoreBlock)
    stress: ScoreBlock = Field(default_factory=ScoreBlock)
    nutrition: ScoreBlock = Field(default_factory=ScoreBlock)
    overall: OverallScore = Field(default_factory=OverallScore)
    risk_factors: TextList = Field(default_factory=list)
    strengths: TextList = Field(default_factory=list)
    goal_suggestions: TextList = Field(default_factory=list)
    recommendations: Annotated[List[Recommendation], _objects("title")] = Field(
        default_factory=list
    )


# ==================== PROFILE QUESTIONS ====================


def _profile_field(value: Any) -> Any:
    text = coerce_optional_text(value)
    if text is None:
        return value
    return to_snake(text.strip().replace(" ", "_").replace("-", "_"))


class ProfileQuestion(_Schema):
    question: Text
    # HealthProfile attribute the answer fills, snake_case
    field: Annotated[str, BeforeValidator(_profile_field)]
    options: TextList = Field(default_factory=list)


DEFAULT_PROFILE_QUESTION = ProfileQuestion(question="What's your age?", field="age")


DomainResult = Union[
    DietPlan,
    ExercisePlan,
    YogaPlan,
    DiseaseGuidance,
    GoalPlan,
    PrescriptionExtract,
    AppointmentIntent,
    ChatReply,
    HealthAssessment,
    ProfileQuestion,
]


# ==================== OUTCOME ====================


class Success(_Schema):
    ok: Literal[True] = True
    task: TaskKind
    value: DomainResult
    debug: Dict[str, Any] = Field(default_factory=dict, exclude=True)


class Failure(_Schema):
    ok: Literal[False] = False
    task: Optional[TaskKind] = None
    kind: ErrorKind
    detail: str
    # Provider text kept for diagnostics; never serialized to clients
    raw_text: Optional[str] = Field(default=None, exclude=True)
    debug: Dict[str, Any] = Field(default_factory=dict, exclude=True)


Outcome = Union[Success, Failure]

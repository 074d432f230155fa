from datetime import date, time

import pytest

from health_agent.errors import SchemaViolation
from health_agent.models import (
    ActivityLevel,
    DietPreference,
    MedicineType,
    Priority,
    ScoreCategory,
    Severity,
    TaskKind,
)
from health_agent.pipeline.validate import validate


def test_diet_plan_coerces_loose_fields(sample_payloads):
    plan = validate(TaskKind.DIET, sample_payloads["diet"])
    assert plan.diet_type is DietPreference.VEGETARIAN
    assert plan.daily_calories == 1800.0
    assert plan.macros.protein == 90.0
    assert plan.meals[1].items == ["Dal", "Rice"]
    assert plan.foods_to_avoid == ["Sugary drinks"]
    assert plan.special_notes == []


def test_diet_plan_missing_meals_is_empty_list():
    plan = validate(TaskKind.DIET, {"dietType": "keto"})
    assert plan.meals == []
    assert plan.daily_calories == 0.0


def test_exercise_scalars_wrapped_into_objects(sample_payloads):
    plan = validate(TaskKind.EXERCISE, sample_payloads["exercise"])
    assert plan.level is ActivityLevel.MODERATELY_ACTIVE
    assert plan.warmup[0].name == "Jumping jacks"
    assert plan.warmup[0].duration == "Unknown"
    squats, pushups = plan.exercises
    assert squats.name == "Squats"
    assert squats.sets == 0
    assert pushups.sets == 3
    assert pushups.rest_seconds == 60


def test_prescription_prices_and_totals(sample_payloads):
    extract = validate(TaskKind.PRESCRIPTION_OCR, sample_payloads["prescription_ocr"])
    assert extract.date == date(2026, 3, 15)
    paracetamol, syrup = extract.medicines
    assert paracetamol.price == 1200.5
    assert paracetamol.type is MedicineType.TABLET
    assert syrup.price is None
    assert syrup.type is MedicineType.SYRUP
    assert syrup.dosage == "Unknown"
    assert extract.estimated_total == 1200.5


def test_prescription_unknown_enum_maps_to_other():
    extract = validate(
        TaskKind.PRESCRIPTION_OCR, {"medicines": [{"name": "Patch", "type": "transdermal"}]}
    )
    assert extract.medicines[0].type is MedicineType.OTHER
    assert extract.estimated_total is None
    assert extract.date is None


def test_disease_guidance_severity_alias(sample_payloads):
    guidance = validate(TaskKind.DISEASE_GUIDANCE, sample_payloads["disease_guidance"])
    assert guidance.severity is Severity.MODERATE
    assert guidance.warning_signs == ["Blurred vision", "Extreme thirst"]
    assert guidance.disclaimer


@pytest.mark.parametrize(
    "kind,payload,field",
    [
        (TaskKind.DISEASE_GUIDANCE, {"instructions": ["Rest"]}, "condition"),
        (TaskKind.DISEASE_GUIDANCE, {"condition": "Unknown"}, "condition"),
        (TaskKind.GOAL_PLAN, {"milestones": []}, "goalName"),
        (TaskKind.GOAL_PLAN, {"goalName": "  "}, "goalName"),
        (TaskKind.CHAT_TURN, {"suggestions": []}, "reply"),
        (TaskKind.APPOINTMENT_INTENT, {"date": "2026-10-20"}, "reason"),
    ],
)
def test_missing_identity_field_raises(kind, payload, field):
    with pytest.raises(SchemaViolation) as info:
        validate(kind, payload)
    assert info.value.field == field


def test_identity_field_accepts_snake_case_key():
    plan = validate(TaskKind.GOAL_PLAN, {"goal_name": "Sleep better"})
    assert plan.goal_name == "Sleep better"


def test_non_object_payload_raises():
    with pytest.raises(SchemaViolation):
        validate(TaskKind.DIET, ["not", "an", "object"])


def test_appointment_day_part_and_percentage_confidence():
    intent = validate(
        TaskKind.APPOINTMENT_INTENT,
        {"date": "Oct 21, 2026", "time": "morning", "reason": "Checkup", "confidence": "85%"},
    )
    assert intent.date == date(2026, 10, 21)
    assert intent.time is None
    assert intent.time_range.start == time(9, 0)
    assert intent.time_range.end == time(12, 0)
    assert intent.confidence == pytest.approx(0.85)


def test_appointment_unparseable_date_is_none():
    intent = validate(TaskKind.APPOINTMENT_INTENT, {"date": "soonish", "reason": "Checkup"})
    assert intent.date is None
    assert intent.confidence == pytest.approx(0.3)


def test_health_assessment_scores(sample_payloads):
    result = validate(TaskKind.HEALTH_ASSESSMENT, sample_payloads["health_assessment"])
    assert result.bmi.value == 22.5
    assert result.bmi.category is ScoreCategory.EXCELLENT
    assert result.activity.score == 60.0
    assert result.activity.category is ScoreCategory.GOOD
    # Zero and missing scores both mean "no data"
    assert result.sleep.score == 50.0
    assert result.nutrition.score == 50.0
    assert result.nutrition.category is ScoreCategory.FAIR
    # Clamped, and an unknown category is derived from the score
    assert result.stress.score == 100.0
    assert result.stress.category is ScoreCategory.EXCELLENT
    assert result.overall.category is ScoreCategory.GOOD
    assert result.recommendations[0].priority is Priority.HIGH


@pytest.mark.parametrize(
    "score,category",
    [(10, ScoreCategory.POOR), (25, ScoreCategory.POOR), (26, ScoreCategory.FAIR), (75, ScoreCategory.GOOD), (76, ScoreCategory.EXCELLENT)],
)
def test_score_category_boundaries(score, category):
    result = validate(TaskKind.HEALTH_ASSESSMENT, {"activity": {"score": score}})
    assert result.activity.category is category


@pytest.mark.parametrize("kind", list(TaskKind))
def test_validation_is_a_fixed_point(kind, sample_payloads):
    first = validate(kind, sample_payloads[kind.value])
    again = validate(kind, first.model_dump(by_alias=True, mode="json"))
    assert again == first


def test_profile_question_field_is_snake_case():
    result = validate(TaskKind.PROFILE_QUESTION, {"question": "How tall are you?", "field": "Height Cm"})
    assert result.field == "height_cm"
    assert result.options == []


@pytest.mark.parametrize(
    "payload,field",
    [
        ({"field": "age"}, "question"),
        ({"question": "How old are you?", "field": "Unknown"}, "field"),
    ],
)
def test_profile_question_identity_fields(payload, field):
    with pytest.raises(SchemaViolation) as info:
        validate(TaskKind.PROFILE_QUESTION, payload)
    assert info.value.field == field

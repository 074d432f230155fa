"""Prompt templates for every generation task.

Rendering is pure: the same ``TaskRequest`` always yields the same prompt
text. Each prompt spells out the JSON shape field by field, asks for the
``"Unknown"`` sentinel instead of omitted fields, and asks for bare JSON.
"""

from __future__ import annotations

import json
from typing import Any, Callable, Dict, List, Optional

from health_agent.errors import InvalidInput
from health_agent.models import ChatRole, HealthProfile, PromptSpec, TaskKind, TaskRequest

NO_PROFILE = (
    "No health profile available. Give general recommendations suitable for a "
    "healthy adult and note where personal details would change the advice."
)

JSON_RULES = (
    "OUTPUT RULES:\n"
    "- Respond with ONLY one valid JSON object matching the shape below.\n"
    '- Include every field. Use "Unknown" for any text you cannot determine and '
    "an empty array [] for lists with no entries. Never omit a field.\n"
    "- Do not wrap the JSON in markdown code fences and add no text before or after it.\n"
    "- Do not use emojis."
)

SYSTEM_PROMPTS: Dict[TaskKind, str] = {
    TaskKind.CHAT_TURN: (
        "You are a friendly, knowledgeable health assistant for a wellness application.\n"
        "Never diagnose, never recommend specific medications or dosages, and never advise "
        "stopping prescribed treatment. Recommend a healthcare professional for serious "
        "concerns. If the user describes an emergency (chest pain, stroke signs, severe "
        "breathing difficulty) set urgent to true and advise immediate emergency care.\n"
        "Keep replies concise, warm and tailored to the profile when one is available."
    ),
    TaskKind.APPOINTMENT_INTENT: (
        "You extract appointment booking details from natural language.\n"
        "Convert relative dates to calendar dates using the current date given below."
    ),
    TaskKind.DIET: (
        "You are a nutrition expert providing personalized, balanced diet plans.\n"
        "Respect allergies, dietary restrictions and health conditions. Never recommend "
        "extreme or very low calorie diets. Include hydration advice."
    ),
    TaskKind.EXERCISE: (
        "You are a fitness expert providing safe, personalized exercise plans.\n"
        "Always account for injuries and limitations, avoid high intensity work for "
        "beginners, include warm-up and cool-down, and give modifications per level."
    ),
    TaskKind.YOGA: (
        "You are a yoga instructor providing safe, personalized yoga sequences.\n"
        "Give contraindications and breathing guidance for every pose and suggest props "
        "or easier variations where needed."
    ),
    TaskKind.DISEASE_GUIDANCE: (
        "You are a health educator giving lifestyle guidance for managing a condition.\n"
        "Never diagnose and never recommend medications. Always advise regular medical "
        "check-ups and following the treating doctor's advice."
    ),
    TaskKind.GOAL_PLAN: (
        "You are a wellness coach creating realistic plans for a health goal, based on "
        "the person's current fitness level and any health conditions."
    ),
    TaskKind.PRESCRIPTION_OCR: (
        "You read prescription images and transcribe their contents exactly. Do not "
        "guess illegible words; mark them Unknown."
    ),
    TaskKind.HEALTH_ASSESSMENT: (
        "You are a health assessment tool calculating wellness scores from a profile.\n"
        "Scores range 0-100. If data for an area is missing, assign the neutral score 50; "
        "never return 0. Categories: 0-25 Poor, 26-50 Fair, 51-75 Good, 76-100 Excellent."
    ),
    TaskKind.PROFILE_QUESTION: (
        "You are gathering health profile information through friendly follow-up "
        "questions: basic info (age, gender, height, weight), health history "
        "(conditions, allergies, injuries), lifestyle (diet, activity, sleep, stress) "
        "and goals. Ask one question at a time, be sensitive about personal "
        "information and offer options when the answer is a choice."
    ),
}

_SCORE = {"score": "number 0-100", "category": "Poor|Fair|Good|Excellent", "recommendation": "string"}

JSON_SHAPES: Dict[TaskKind, Dict[str, Any]] = {
    TaskKind.DIET: {
        "dietType": "vegetarian|vegan|non_vegetarian|pescatarian|eggetarian|keto|other",
        "dailyCalories": "number",
        "macros": {"protein": "number (grams)", "carbs": "number (grams)", "fats": "number (grams)"},
        "meals": [{"name": "string", "time": "string", "items": ["string"], "calories": "number"}],
        "foodsToInclude": ["string"],
        "foodsToAvoid": ["string"],
        "hydrationTips": ["string"],
        "specialNotes": ["string"],
    },
    TaskKind.EXERCISE: {
        "level": "sedentary|lightly_active|moderately_active|very_active|extremely_active",
        "warmup": [{"name": "string", "duration": "string"}],
        "exercises": [
            {
                "name": "string",
                "targetMuscle": "string",
                "sets": "number",
                "reps": "string",
                "restSeconds": "number",
                "formTips": ["string"],
                "modifications": "string",
            }
        ],
        "cooldown": [{"name": "string", "duration": "string"}],
        "safetyWarnings": ["string"],
        "totalDuration": "string",
    },
    TaskKind.YOGA: {
        "poses": [
            {
                "sanskritName": "string",
                "englishName": "string",
                "targetArea": "string",
                "benefits": ["string"],
                "instructions": ["string"],
                "duration": "string",
                "breathingPattern": "string",
                "contraindications": ["string"],
                "modifications": "string",
            }
        ],
        "sequence": ["pose name in practice order"],
        "totalDuration": "string",
        "generalTips": ["string"],
    },
    TaskKind.DISEASE_GUIDANCE: {
        "condition": "string",
        "overview": "string (brief, non-diagnostic)",
        "severity": "mild|moderate|severe|unknown",
        "instructions": ["string (practical step the person can follow)"],
        "lifestyleModifications": ["string"],
        "dietaryRecommendations": ["string"],
        "exerciseSuggestions": ["string"],
        "stressManagement": ["string"],
        "warningSigns": ["string"],
        "whenToSeekCare": ["string"],
    },
    TaskKind.GOAL_PLAN: {
        "goalName": "string",
        "overview": "string",
        "timeline": "string",
        "milestones": [{"title": "string", "description": "string", "timeframe": "string"}],
        "weeklyPlan": {
            day: ["string"]
            for day in ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
        },
        "dietPlan": {"guidelines": ["string"], "calories": "string", "macros": "string"},
        "exercisePlan": {"routines": ["string"], "frequency": "string"},
        "lifestyleChanges": ["string"],
        "trackingTips": ["string"],
        "tipsForSuccess": ["string"],
        "potentialChallenges": ["string"],
    },
    TaskKind.PRESCRIPTION_OCR: {
        "doctor": "string",
        "date": "YYYY-MM-DD",
        "patient": "string",
        "diagnosis": "string",
        "medicines": [
            {
                "name": "string",
                "dosage": "string (e.g. 500mg)",
                "frequency": "string (e.g. 2 times daily)",
                "duration": "string (e.g. 5 days)",
                "type": "tablet|capsule|syrup|injection|ointment|drops|inhaler|powder|other",
                "price": "string estimated price with currency (e.g. 100.00)",
            }
        ],
        "instructions": ["string"],
    },
    TaskKind.APPOINTMENT_INTENT: {
        "specialization": "string or null",
        "doctorName": "string or null",
        "date": "YYYY-MM-DD",
        "time": "HH:MM or null",
        "timeRange": {"start": "HH:MM", "end": "HH:MM"},
        "reason": "string",
        "confidence": "number 0.0-1.0",
    },
    TaskKind.CHAT_TURN: {
        "reply": "string",
        "suggestions": ["short follow-up question the user might ask"],
        "urgent": "boolean",
    },
    TaskKind.HEALTH_ASSESSMENT: {
        "bmi": {"value": "number", **_SCORE},
        "activity": _SCORE,
        "sleep": _SCORE,
        "stress": _SCORE,
        "nutrition": _SCORE,
        "overall": {"score": "number 0-100", "category": "Poor|Fair|Good|Excellent", "summary": "string"},
        "riskFactors": ["string"],
        "strengths": ["string"],
        "goalSuggestions": ["string"],
        "recommendations": [{"title": "string", "description": "string", "priority": "high|medium|low"}],
    },
    TaskKind.PROFILE_QUESTION: {
        "question": "the question to ask, friendly and conversational",
        "field": "the profile field the answer fills, e.g. heightCm",
        "options": ["choices, only when the question has specific choices"],
    },
}


def _label(value: str) -> str:
    return value.lower().replace("_", " ")


def format_health_profile(profile: Optional[HealthProfile]) -> str:
    if profile is None:
        return NO_PROFILE

    parts: List[str] = []
    if profile.age:
        parts.append(f"Age: {profile.age} years")
    if profile.gender:
        parts.append(f"Gender: {_label(profile.gender)}")
    if profile.height_cm:
        parts.append(f"Height: {profile.height_cm:g} cm")
    if profile.weight_kg:
        parts.append(f"Weight: {profile.weight_kg:g} kg")
    if profile.bmi is not None:
        parts.append(f"BMI: {profile.bmi:.1f}")
    if profile.existing_conditions:
        parts.append(f"Health Conditions: {', '.join(profile.existing_conditions)}")
    if profile.allergies:
        parts.append(f"Allergies: {', '.join(profile.allergies)}")
    if profile.injuries:
        parts.append(f"Injuries/Physical Limitations: {', '.join(profile.injuries)}")
    if profile.diet_preference:
        parts.append(f"Diet: {_label(profile.diet_preference.value)}")
    if profile.activity_level:
        parts.append(f"Activity Level: {_label(profile.activity_level.value)}")
    if profile.sleep_quality:
        parts.append(f"Sleep Quality: {_label(profile.sleep_quality)}")
    if profile.stress_level:
        parts.append(f"Stress Level: {_label(profile.stress_level)}")
    if profile.primary_goal:
        parts.append(f"Primary Goal: {_label(profile.primary_goal)}")
    if profile.target_weight_kg:
        parts.append(f"Target Weight: {profile.target_weight_kg:g} kg")

    return "\n".join(parts) if parts else NO_PROFILE


def json_shape(kind: TaskKind) -> str:
    return json.dumps(JSON_SHAPES[kind], indent=2)


def _profile_section(request: TaskRequest) -> str:
    return f"USER'S HEALTH PROFILE:\n{format_health_profile(request.profile)}"


def _request_lines(request: TaskRequest, **labels: Optional[str]) -> List[str]:
    lines = [f"{label}: {value.strip()}" for label, value in labels.items() if value and value.strip()]
    if request.instruction and request.instruction.strip():
        lines.append(f"SPECIFIC REQUEST: {request.instruction.strip()}")
    return lines


def _render_diet(request: TaskRequest) -> List[str]:
    return [
        _profile_section(request),
        *_request_lines(request),
        "Generate a personalized diet plan with meal-by-meal suggestions (breakfast, "
        "lunch, dinner and snacks). Consider health conditions, allergies, diet "
        "preference, goals and activity level.",
    ]


def _render_exercise(request: TaskRequest) -> List[str]:
    return [
        _profile_section(request),
        *_request_lines(request, **{"TARGET BODY PART": request.body_part}),
        "Generate a safe, personalized exercise plan. Check for injuries affecting the "
        "target area, adjust intensity to the fitness level and add warnings for any "
        "health conditions.",
    ]


def _render_yoga(request: TaskRequest) -> List[str]:
    return [
        _profile_section(request),
        *_request_lines(
            request,
            **{"TARGET BODY PART": request.body_part, "FOR CONDITION": request.condition},
        ),
        "Generate a safe, personalized yoga plan suited to the person's flexibility "
        "and any injuries or conditions mentioned.",
    ]


def _render_disease(request: TaskRequest) -> List[str]:
    return [
        _profile_section(request),
        *_request_lines(request, **{"CONDITION TO MANAGE": request.condition}),
        "Provide lifestyle guidance for managing this condition: practical instructions, "
        "lifestyle and dietary changes, safe exercise, stress management, warning signs "
        "and when to seek medical attention. No medication advice, no diagnosis.",
    ]


def _render_goal(request: TaskRequest) -> List[str]:
    return [
        _profile_section(request),
        *_request_lines(request, GOAL=request.goal, DURATION=request.duration),
        "Create a realistic plan for this goal with milestones, a typical week, diet and "
        "exercise guidance, lifestyle habits, progress tracking and motivation tips.",
    ]


def _render_prescription(request: TaskRequest) -> List[str]:
    return [
        *_request_lines(request),
        "Analyze the attached prescription image and extract the doctor, date, patient, "
        "diagnosis, every medicine and any instructions.",
    ]


def _render_appointment(request: TaskRequest) -> List[str]:
    now = request.reference_time
    if now is None:
        raise InvalidInput("Appointment extraction needs a reference time")
    text = (request.instruction or "").strip()
    return [
        f"CURRENT DATE: {now.strftime('%A, %B %d, %Y')} ({now.strftime('%Y-%m-%d')})\n"
        f"CURRENT TIME: {now.strftime('%H:%M')}",
        f'USER INPUT: "{text}"',
        "Rules:\n"
        '- "tomorrow" is the current date plus 1 day; "next week" adds 7 days.\n'
        "- For day names like Monday use the next occurrence after the current date.\n"
        '- "morning" is timeRange 09:00-12:00, "afternoon" 12:00-17:00, "evening" 17:00-20:00.\n'
        "- If no exact time is given set time to null and provide timeRange.\n"
        "- reason is the purpose of the visit in the user's words.\n"
        "- If information is ambiguous give your best interpretation with lower confidence.",
    ]


def _render_chat(request: TaskRequest) -> List[str]:
    sections = [_profile_section(request)]
    if request.history:
        lines = [
            f"{'User' if turn.role == ChatRole.USER else 'Assistant'}: {turn.text}"
            for turn in request.history
        ]
        sections.append("CONVERSATION SO FAR:\n" + "\n".join(lines))
    sections.append(f"User: {(request.instruction or '').strip()}")
    return sections


def _render_assessment(request: TaskRequest) -> List[str]:
    return [
        _profile_section(request),
        "Calculate health scores. BMI from height and weight; activity from activity "
        "level (sedentary 20, lightly active 40, moderately active 60, very active 80, "
        "extremely active 95); sleep from sleep quality (poor 25, fair 50, good 75, "
        "excellent 95); stress inverted (low 90, moderate 60, high 35, very high 15); "
        "overall as a weighted average considering health conditions.",
    ]



def _completed_fields(profile: Optional[HealthProfile]) -> List[str]:
    if profile is None:
        return []
    lines = []
    for key, value in profile.model_dump(mode="json", exclude_none=True).items():
        if value == [] or value == "":
            continue
        shown = ", ".join(value) if isinstance(value, list) else value
        lines.append(f"{key}: {shown}")
    return lines


def _render_profile_question(request: TaskRequest) -> List[str]:
    completed = _completed_fields(request.profile)
    return [
        "COMPLETED INFORMATION:\n" + ("\n".join(completed) if completed else "None yet"),
        f"CURRENT STEP: {request.step}",
        "Generate the next question to ask the user. Consider what information is "
        "still missing and never ask again for a completed field.",
    ]


PROMPT_RENDERERS: Dict[TaskKind, Callable[[TaskRequest], List[str]]] = {
    TaskKind.DIET: _render_diet,
    TaskKind.EXERCISE: _render_exercise,
    TaskKind.YOGA: _render_yoga,
    TaskKind.DISEASE_GUIDANCE: _render_disease,
    TaskKind.GOAL_PLAN: _render_goal,
    TaskKind.PRESCRIPTION_OCR: _render_prescription,
    TaskKind.APPOINTMENT_INTENT: _render_appointment,
    TaskKind.CHAT_TURN: _render_chat,
    TaskKind.HEALTH_ASSESSMENT: _render_assessment,
    TaskKind.PROFILE_QUESTION: _render_profile_question,
}


def build_prompt(request: TaskRequest) -> PromptSpec:
    kind = request.kind
    parts = [SYSTEM_PROMPTS[kind], *PROMPT_RENDERERS[kind](request)]
    parts.append(f"{JSON_RULES}\n\nJSON SHAPE:\n{json_shape(kind)}")
    text = "\n\n".join(part for part in parts if part)

    if kind == TaskKind.PRESCRIPTION_OCR:
        return PromptSpec(
            kind=kind, text=text, image=request.attachment, media_type=request.media_type
        )
    return PromptSpec(kind=kind, text=text)

import json
import threading
from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from health_agent.config import settings

# Monday
REFERENCE_TIME = datetime(2026, 10, 19, 10, 0)


@pytest.fixture(autouse=True)
def set_test_env(monkeypatch, tmp_path):
    # Safer defaults for tests: no real provider, logs under tmp
    monkeypatch.setenv("APP_ENV", "test")
    monkeypatch.setenv("LLM_PROVIDER", "none")
    monkeypatch.setenv("APP_LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.setenv("LOG_LEVEL", "INFO")
    monkeypatch.delenv("OUTBOUND_ALLOWLIST", raising=False)
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)

    monkeypatch.setattr(settings, "data_dir", str(tmp_path))
    monkeypatch.setattr(settings, "openai_api_key", None)
    monkeypatch.setattr(settings, "gemini_api_key", None)


class FakeProvider:
    """Stands in for ``llm.generate``.

    Responses are served in order; the last one repeats. Dicts are encoded as
    JSON, exceptions are raised.
    """

    def __init__(self):
        self.calls = []
        self.responses = []
        self._lock = threading.Lock()

    def reply(self, *responses):
        self.responses = list(responses)
        return self

    def __call__(self, prompt, image=None, media_type=None):
        with self._lock:
            self.calls.append({"prompt": prompt, "image": image, "media_type": media_type})
            if not self.responses:
                raise AssertionError("FakeProvider called without a configured reply")
            response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        if isinstance(response, (dict, list)):
            return json.dumps(response)
        return response

    @property
    def last_prompt(self):
        return self.calls[-1]["prompt"]


@pytest.fixture()
def fake_llm(monkeypatch):
    from health_agent.tools import llm

    fake = FakeProvider()
    monkeypatch.setattr(llm, "generate", fake)
    return fake


@pytest.fixture()
def chat_store(monkeypatch):
    from health_agent.chat import service
    from health_agent.chat.sessions import ChatSessionStore

    store = ChatSessionStore(limit=20)
    monkeypatch.setattr(service, "store", store)
    return store


@pytest.fixture()
def reference_time():
    return REFERENCE_TIME


@pytest.fixture()
def client(fake_llm, chat_store):
    from health_agent.main import app

    with TestClient(app) as c:
        yield c


@pytest.fixture()
def sample_payloads():
    return {
        "diet": {
            "dietType": "Vegetarian",
            "dailyCalories": "1,800 kcal",
            "macros": {"protein": "90g", "carbs": 200, "fats": "60"},
            "meals": [
                {"name": "Breakfast", "time": "8:00 AM", "items": ["Oats", "Berries"], "calories": "350"},
                {"name": "Lunch", "time": "1:00 PM", "items": "- Dal\n- Rice", "calories": 600},
            ],
            "foodsToInclude": ["Leafy greens"],
            "foodsToAvoid": "Sugary drinks",
            "hydrationTips": ["Drink 8 glasses of water"],
        },
        "exercise": {
            "level": "Moderate",
            "warmup": ["Jumping jacks"],
            "exercises": [
                "Squats",
                {"name": "Push-ups", "targetMuscle": "Chest", "sets": "3", "reps": "10-12", "restSeconds": "60 seconds"},
            ],
            "cooldown": [{"name": "Hamstring stretch", "duration": "2 min"}],
            "safetyWarnings": [],
            "totalDuration": "30 minutes",
        },
        "yoga": {
            "poses": [
                {"sanskritName": "Tadasana", "englishName": "Mountain Pose", "benefits": ["Posture"]},
            ],
            "sequence": ["Mountain Pose"],
            "totalDuration": "20 minutes",
        },
        "disease_guidance": {
            "condition": "Type 2 diabetes",
            "overview": "A condition affecting blood sugar regulation.",
            "severity": "Medium",
            "instructions": ["Monitor blood glucose daily", "Walk after meals"],
            "warningSigns": "Blurred vision\nExtreme thirst",
        },
        "goal_plan": {
            "goalName": "Lose 5 kg",
            "timeline": "12 weeks",
            "milestones": [{"title": "Week 4", "description": "Lose 2 kg", "timeframe": "1 month"}],
            "weeklyPlan": {"monday": ["30 min walk"], "friday": "Yoga"},
            "dietPlan": {"guidelines": ["Reduce refined carbs"], "calories": "1600"},
        },
        "prescription_ocr": {
            "doctor": "Dr. Rao",
            "date": "15/03/2026",
            "patient": "Unknown",
            "diagnosis": "Fever",
            "medicines": [
                {"name": "Paracetamol", "dosage": "500mg", "frequency": "2 times daily", "duration": "5 days", "type": "Tab", "price": "₹1,200.50"},
                {"name": "Cough syrup", "type": "Suspension", "price": "Unknown"},
            ],
            "instructions": ["Take after food"],
        },
        "appointment_intent": {
            "specialization": "Cardiologist",
            "doctorName": "Dr. Smith",
            "date": "2026-10-20",
            "time": "10:00",
            "timeRange": None,
            "reason": "Chest discomfort checkup",
            "confidence": 0.9,
        },
        "chat_turn": {
            "reply": "Staying hydrated helps with energy levels.",
            "suggestions": ["How much water should I drink?"],
            "urgent": "false",
        },
        "health_assessment": {
            "bmi": {"value": 22.5, "score": 85, "category": "Excellent", "recommendation": "Maintain"},
            "activity": {"score": "60", "category": "good"},
            "sleep": 0,
            "stress": {"score": 150, "category": "Great"},
            "overall": {"score": 65, "summary": "Generally healthy."},
            "recommendations": [{"title": "Sleep more", "priority": "High"}],
        },
        "profile_question": {
            "question": "How active are you during a typical week?",
            "field": "activityLevel",
            "options": ["Sedentary", "Lightly active", "Very active"],
        },
    }

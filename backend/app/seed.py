"""Seed the database with a demo study configuration and sample surveys."""

import logging
import random
from datetime import datetime, timedelta, timezone

from sqlalchemy.orm import Session

from app.core.database import SessionLocal, init_db
from app.schemas.studies import StudyConfigIn
from app.services.study_configs import upsert_study_config
from app.services.surveys import submit_survey
from app.services.validation import validate_submission

logger = logging.getLogger(__name__)

DEMO_STUDY_ID = "DEMO-001"

SEED_QUESTIONS = [
    {"type": "scale", "text": "Overall, how would you rate your health today?", "constraints": {"min": 0, "max": 10}},
    {"type": "scale", "text": "Rate your pain over the last 24 hours", "constraints": {"min": 0, "max": 10}},
    {"type": "boolean", "text": "Did you take your medication as prescribed?"},
    {"type": "number", "text": "How many hours did you sleep last night?", "constraints": {"min": 0, "max": 24}},
    {
        "type": "multiple_choice",
        "text": "How often did you feel fatigued this week?",
        "constraints": {"options": ["Never", "Sometimes", "Often", "Always"]},
    },
    {
        "type": "checkbox",
        "text": "Which symptoms did you experience?",
        "required": False,
        "constraints": {"options": ["Headache", "Nausea", "Dizziness", "Fatigue", "None"]},
    },
    {"type": "boolean", "text": "Did you experience any side effects?"},
    {
        "type": "text",
        "text": "Describe any side effects",
        "required": False,
        "constraints": {"maxLength": 500},
        "dependsOn": {"questionId": 7, "value": True},
    },
    {"type": "scale", "text": "Rate your appetite", "constraints": {"min": 1, "max": 5}},
    {"type": "scale", "text": "Rate your mood", "constraints": {"min": 1, "max": 5}},
    {"type": "number", "text": "How many glasses of water did you drink yesterday?", "constraints": {"min": 0}},
    {"type": "boolean", "text": "Did you exercise today?"},
    {"type": "number", "text": "Minutes of exercise", "constraints": {"min": 0, "max": 600}},
    {
        "type": "multiple_choice",
        "text": "How would you describe your stress level?",
        "constraints": {"options": ["Low", "Moderate", "High"]},
    },
    {"type": "scale", "text": "Rate your ability to concentrate", "constraints": {"min": 1, "max": 5}},
    {"type": "boolean", "text": "Did you visit a healthcare provider since the last survey?"},
    {"type": "scale", "text": "Rate your mobility", "constraints": {"min": 1, "max": 5}},
    {
        "type": "checkbox",
        "text": "Which activities were difficult?",
        "required": False,
        "constraints": {"options": ["Walking", "Climbing stairs", "Dressing", "Household tasks"]},
    },
    {"type": "scale", "text": "How satisfied are you with your treatment?", "constraints": {"min": 1, "max": 5}},
    {"type": "text", "text": "Anything else you would like to tell the study team?", "required": False},
]


def _sample_answer(question: dict, rng: random.Random):
    constraints = question.get("constraints") or {}
    qtype = question["type"]
    if qtype in ("scale", "number"):
        return rng.randint(int(constraints.get("min", 0)), int(constraints.get("max", 10)))
    if qtype == "boolean":
        return rng.choice([True, False])
    if qtype == "multiple_choice":
        return rng.choice(constraints["options"])
    if qtype == "checkbox":
        return rng.sample(constraints["options"], k=rng.randint(0, 2))
    return ""


def build_sample_submission(
    patient_id: str,
    completed_at: datetime,
    rng: random.Random,
    study_id: str = DEMO_STUDY_ID,
) -> dict:
    return {
        "patientId": patient_id,
        "studyId": study_id,
        "responses": [
            {
                "questionId": i + 1,
                "question": q["text"],
                "answer": _sample_answer(q, rng),
                "responseType": q["type"],
            }
            for i, q in enumerate(SEED_QUESTIONS)
        ],
        "metadata": {"completedAt": completed_at.isoformat(), "deviceInfo": "seed"},
    }


def seed_demo_study(db: Session | None = None, num_patients: int = 5, seed: int = 42) -> list[str]:
    """Insert the demo study config and one survey per patient. Returns the survey ids."""
    own_session = db is None
    if own_session:
        init_db()
        db = SessionLocal()

    rng = random.Random(seed)
    start = datetime.now(timezone.utc) - timedelta(days=num_patients)
    created: list[str] = []
    try:
        payload = StudyConfigIn.model_validate(
            {"name": "Demo patient-reported outcomes", "questions": SEED_QUESTIONS}
        )
        config = upsert_study_config(db, DEMO_STUDY_ID, payload)

        for n in range(num_patients):
            body = build_sample_submission(f"PATIENT-{n + 1:03d}", start + timedelta(days=n), rng)
            submission = validate_submission(body, questions=config.questions)
            created.append(submit_survey(db, submission))
        return created
    finally:
        if own_session:
            db.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    survey_ids = seed_demo_study()
    for survey_id in survey_ids:
        print(f"Created survey {survey_id}")
    print(f"\nSeeded {len(survey_ids)} surveys for study {DEMO_STUDY_ID}.")

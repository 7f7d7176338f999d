"""Study configuration — per-study question definitions and submission settings."""

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.study_config import StudyConfig
from app.schemas.studies import StudyConfigIn
from app.services.exceptions import DatabaseError, StudyNotFound, SurveyValidationError

logger = logging.getLogger(__name__)

CHOICE_TYPES = {"multiple_choice", "checkbox"}


def validate_questions(questions: list[dict]) -> list[dict[str, str]]:
    """Validate question definitions, return list of errors."""
    errors: list[dict[str, str]] = []
    for i, q in enumerate(questions):
        field = f"questions.{i}"
        constraints = q.get("constraints") or {}

        if q.get("type") in CHOICE_TYPES:
            options = constraints.get("options")
            if not options or len(options) < 2:
                errors.append(
                    {"field": f"{field}.constraints.options", "message": f"{q['type']} requires at least 2 options"}
                )

        low, high = constraints.get("min"), constraints.get("max")
        if low is not None and high is not None and low > high:
            errors.append({"field": f"{field}.constraints", "message": "min must not exceed max"})

        depends_on = q.get("dependsOn")
        if depends_on:
            target = depends_on.get("questionId")
            if target == i + 1 or not 1 <= target <= len(questions):
                errors.append(
                    {
                        "field": f"{field}.dependsOn.questionId",
                        "message": f"Must reference another question (1-{len(questions)})",
                    }
                )
    return errors


def get_study_config(db: Session, study_id: str) -> StudyConfig:
    config = db.get(StudyConfig, study_id)
    if config is None:
        raise StudyNotFound(study_id)
    return config


def upsert_study_config(db: Session, study_id: str, payload: StudyConfigIn) -> StudyConfig:
    """Create or replace a study's configuration."""
    questions = [q.model_dump(mode="json", by_alias=True, exclude_none=True) for q in payload.questions]

    errors = validate_questions(questions)
    if errors:
        raise SurveyValidationError(errors)

    config = db.get(StudyConfig, study_id)
    if config is None:
        config = StudyConfig(study_id=study_id)
        db.add(config)

    config.name = payload.name
    config.questions = questions
    config.settings = payload.settings.model_dump(mode="json", by_alias=True)

    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Failed to save config for study %s", study_id)
        raise DatabaseError("Failed to save study configuration") from exc

    db.refresh(config)
    logger.info("Saved config for study %s (%d questions)", study_id, len(questions))
    return config

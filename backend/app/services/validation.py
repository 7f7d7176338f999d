"""Submission validation — question-count contract plus per-study question rules.

Every problem is reported, not just the first, so a client can fix a
submission in one round trip. Nothing here writes to the database.
"""

import logging
from typing import Any

from pydantic import ValidationError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.study_config import StudyConfig
from app.schemas.surveys import ResponseItem, SurveySubmission
from app.services.answers import NUMERIC_TYPES
from app.services.exceptions import SurveyValidationError

logger = logging.getLogger(__name__)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


# Answer shapes each response type accepts once a study defines its questions
ANSWER_SHAPES = {
    "text": lambda v: isinstance(v, str),
    "number": _is_number,
    "scale": _is_number,
    "boolean": lambda v: isinstance(v, bool),
    "multiple_choice": lambda v: not isinstance(v, list),
    "checkbox": lambda v: isinstance(v, list),
}


def _error(field: str, message: str) -> dict[str, str]:
    return {"field": field, "message": message}


def _format_loc(loc: tuple) -> str:
    return ".".join(str(part) for part in loc) or "body"


# ---------------------------------------------------------------------------
# Structural checks
# ---------------------------------------------------------------------------


def _check_response_set(payload: Any, question_count: int) -> list[dict[str, str]]:
    """Count and uniqueness checks over the raw responses list."""
    if not isinstance(payload, dict):
        return []
    responses = payload.get("responses")
    if not isinstance(responses, list):
        return []

    errors: list[dict[str, str]] = []
    if len(responses) != question_count:
        errors.append(_error("responses", f"Expected exactly {question_count} responses, got {len(responses)}"))

    seen: set[int] = set()
    for i, item in enumerate(responses):
        if not isinstance(item, dict):
            continue
        question_id = item.get("questionId")
        if not isinstance(question_id, int) or isinstance(question_id, bool):
            continue
        if question_id in seen:
            errors.append(_error(f"responses.{i}.questionId", f"Duplicate questionId {question_id}"))
        seen.add(question_id)
    return errors


# ---------------------------------------------------------------------------
# Per-study question rules
# ---------------------------------------------------------------------------


def _parseable_items(payload: Any, question_count: int) -> list[tuple[int, ResponseItem]]:
    """Responses that validate on their own, with their index in the body."""
    responses = payload.get("responses") if isinstance(payload, dict) else None
    if not isinstance(responses, list):
        return []

    items = []
    for i, raw in enumerate(responses):
        try:
            items.append((i, ResponseItem.model_validate(raw, context={"question_count": question_count})))
        except ValidationError:
            continue
    return items


def _check_against_questions(items: list[tuple[int, ResponseItem]], questions: list[dict]) -> list[dict[str, str]]:
    errors: list[dict[str, str]] = []

    for i, item in items:
        definition = questions[item.question_id - 1]
        field = f"responses.{i}"
        expected_type = definition.get("type")
        answer = item.answer

        if item.response_type != expected_type:
            errors.append(
                _error(
                    f"{field}.responseType",
                    f"Question {item.question_id} expects responseType '{expected_type}'",
                )
            )
            continue

        if not ANSWER_SHAPES[expected_type](answer):
            errors.append(_error(f"{field}.answer", f"Answer does not match responseType '{expected_type}'"))
            continue

        empty = answer == [] or (isinstance(answer, str) and not answer.strip())
        if empty:
            if definition.get("required", True):
                errors.append(_error(f"{field}.answer", f"Question {item.question_id} is required"))
            continue

        constraints = definition.get("constraints") or {}
        low, high = constraints.get("min"), constraints.get("max")
        if expected_type in NUMERIC_TYPES:
            if low is not None and answer < low:
                errors.append(_error(f"{field}.answer", f"Answer must be at least {low}"))
            if high is not None and answer > high:
                errors.append(_error(f"{field}.answer", f"Answer must be at most {high}"))

        options = constraints.get("options")
        if options and expected_type == "multiple_choice" and answer not in options:
            errors.append(_error(f"{field}.answer", f"'{answer}' is not a valid option"))
        if options and expected_type == "checkbox":
            invalid = [choice for choice in answer if choice not in options]
            if invalid:
                errors.append(_error(f"{field}.answer", f"Invalid options: {invalid}"))

        max_length = constraints.get("maxLength")
        if max_length and expected_type == "text" and len(answer) > max_length:
            errors.append(_error(f"{field}.answer", f"Answer exceeds {max_length} characters"))

    return errors


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


def validate_submission(
    payload: Any,
    question_count: int | None = None,
    questions: list[dict] | None = None,
) -> SurveySubmission:
    """Validate a raw submission body.

    ``questions`` (a study's question definitions) overrides ``question_count``
    when given. Raises SurveyValidationError listing every failing field.
    """
    if questions:
        question_count = len(questions)
    elif question_count is None:
        question_count = settings.SURVEY_QUESTION_COUNT

    errors: list[dict[str, str]] = []
    submission: SurveySubmission | None = None
    try:
        submission = SurveySubmission.model_validate(payload, context={"question_count": question_count})
    except ValidationError as exc:
        errors.extend(_error(_format_loc(err["loc"]), err["msg"]) for err in exc.errors())

    errors.extend(_check_response_set(payload, question_count))

    if questions:
        if submission is not None:
            items = list(enumerate(submission.responses))
        else:
            items = _parseable_items(payload, question_count)
        errors.extend(_check_against_questions(items, questions))

    if errors:
        logger.info("Rejected submission with %d validation error(s)", len(errors))
        raise SurveyValidationError(errors)
    return submission


def validate_for_study(db: Session, payload: Any) -> SurveySubmission:
    """Validate against the study's configured questions, or the fixed count when unconfigured."""
    study_id = payload.get("studyId") if isinstance(payload, dict) else None
    config = None
    if isinstance(study_id, str) and study_id.strip():
        config = db.get(StudyConfig, study_id.strip())

    if config is not None and config.questions:
        return validate_submission(payload, questions=config.questions)
    return validate_submission(payload)

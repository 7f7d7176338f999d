"""Survey store — atomic submission, lookup, paginated listing, and export queries."""

import logging
import uuid
from collections.abc import Iterator
from datetime import datetime, timezone

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.study_config import StudyConfig
from app.models.survey import Survey
from app.models.survey_response import SurveyResponse
from app.schemas.surveys import SurveySubmission
from app.services.answers import decode_answer, encode_answer
from app.services.exceptions import DatabaseError, ResubmissionNotAllowed, SurveyNotFound
from app.services.export import ExportRow

logger = logging.getLogger(__name__)


def to_utc_naive(value: datetime | None) -> datetime:
    """Timestamps are stored as naive UTC so SQLite and PostgreSQL sort them alike."""
    if value is None:
        return datetime.now(timezone.utc).replace(tzinfo=None)
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


# ---------------------------------------------------------------------------
# Submission
# ---------------------------------------------------------------------------


def submit_survey(db: Session, submission: SurveySubmission, status: str = "completed") -> str:
    """Write the survey header and all its responses as one transaction.

    Returns the new survey id only after the commit succeeds. On any storage
    failure the whole unit is rolled back and DatabaseError is raised.
    """
    try:
        config = db.get(StudyConfig, submission.study_id)
        previous_version = db.execute(
            select(func.max(Survey.version)).where(
                Survey.patient_id == submission.patient_id,
                Survey.study_id == submission.study_id,
            )
        ).scalar_one()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Failed to prepare survey for study %s", submission.study_id)
        raise DatabaseError("Failed to save survey") from exc

    if previous_version is not None and config is not None and not config.allow_resubmission:
        raise ResubmissionNotAllowed(submission.patient_id, submission.study_id)

    metadata = submission.metadata
    survey_id = str(uuid.uuid4())
    survey = Survey(
        survey_id=survey_id,
        patient_id=submission.patient_id,
        study_id=submission.study_id,
        completed_at=to_utc_naive(metadata.completed_at if metadata else None),
        metadata_=metadata.model_dump(mode="json", by_alias=True, exclude_none=True) if metadata else None,
        version=(previous_version or 0) + 1,
        status=status,
    )
    survey.responses = [
        SurveyResponse(
            survey_id=survey_id,
            question_id=item.question_id,
            question_text=item.question,
            answer=encode_answer(item.answer),
            response_type=item.response_type,
        )
        for item in submission.responses
    ]

    try:
        db.add(survey)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error(
            "Rolled back survey %s for study %s (%d responses): %s",
            survey_id,
            submission.study_id,
            len(submission.responses),
            exc,
        )
        raise DatabaseError("Failed to save survey") from exc

    logger.info(
        "Saved survey %s (patient=%s, study=%s, version=%d, responses=%d)",
        survey_id,
        submission.patient_id,
        submission.study_id,
        (previous_version or 0) + 1,
        len(submission.responses),
    )
    return survey_id


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


def get_survey(db: Session, survey_id: str) -> tuple[Survey, list[SurveyResponse]]:
    """Return a survey and its responses ordered by question id."""
    try:
        survey = db.get(Survey, survey_id)
        if survey is None:
            raise SurveyNotFound(survey_id)
        responses = (
            db.execute(
                select(SurveyResponse)
                .where(SurveyResponse.survey_id == survey_id)
                .order_by(SurveyResponse.question_id.asc())
            )
            .scalars()
            .all()
        )
    except SQLAlchemyError as exc:
        logger.exception("Failed to load survey %s", survey_id)
        raise DatabaseError("Failed to load survey") from exc
    return survey, list(responses)


def list_study_surveys(
    db: Session,
    study_id: str,
    page: int = 1,
    page_size: int = 50,
) -> tuple[list[tuple[Survey, int]], bool]:
    """Return one page of a study's surveys, most recently completed first.

    Each survey comes with its response count. The flag is True when the page
    is full, which may report one extra empty page when the total is an exact
    multiple of ``page_size``.
    """
    response_count = func.count(SurveyResponse.response_id).label("response_count")
    query = (
        select(Survey, response_count)
        .outerjoin(SurveyResponse, SurveyResponse.survey_id == Survey.survey_id)
        .where(Survey.study_id == study_id)
        .group_by(Survey.survey_id)
        .order_by(Survey.completed_at.desc(), Survey.survey_id.asc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    try:
        rows = db.execute(query).all()
    except SQLAlchemyError as exc:
        logger.exception("Failed to list surveys for study %s", study_id)
        raise DatabaseError("Failed to list surveys") from exc

    surveys = [(row[0], row[1]) for row in rows]
    return surveys, len(surveys) == page_size


def study_exists(db: Session, study_id: str) -> bool:
    """A study is known once it has a survey or a question configuration."""
    try:
        if db.get(StudyConfig, study_id) is not None:
            return True
        found = db.execute(select(Survey.survey_id).where(Survey.study_id == study_id).limit(1)).first()
    except SQLAlchemyError as exc:
        logger.exception("Failed to look up study %s", study_id)
        raise DatabaseError("Failed to look up study") from exc
    return found is not None


def iter_export_rows(db: Session, study_id: str) -> Iterator[ExportRow]:
    """Yield every (survey, response) pair of a study, newest survey first.

    Rows are fetched in batches of EXPORT_BATCH_SIZE rather than loaded at once.
    """
    query = (
        select(
            Survey.survey_id,
            Survey.patient_id,
            Survey.study_id,
            Survey.completed_at,
            SurveyResponse.question_id,
            SurveyResponse.question_text,
            SurveyResponse.answer,
            SurveyResponse.response_type,
        )
        .join(SurveyResponse, SurveyResponse.survey_id == Survey.survey_id)
        .where(Survey.study_id == study_id)
        .order_by(Survey.completed_at.desc(), Survey.survey_id.asc(), SurveyResponse.question_id.asc())
        .execution_options(yield_per=settings.EXPORT_BATCH_SIZE)
    )
    count = 0
    try:
        for row in db.execute(query):
            count += 1
            yield ExportRow(
                survey_id=row.survey_id,
                patient_id=row.patient_id,
                study_id=row.study_id,
                completed_at=row.completed_at,
                question_id=row.question_id,
                question_text=row.question_text,
                answer=decode_answer(row.answer, row.response_type),
                response_type=row.response_type,
            )
    except SQLAlchemyError as exc:
        logger.exception("Export of study %s failed after %d rows", study_id, count)
        raise DatabaseError("Failed to export study") from exc
    logger.info("Exported %d rows for study %s", count, study_id)


# ---------------------------------------------------------------------------
# Delete
# ---------------------------------------------------------------------------


def delete_survey(db: Session, survey_id: str) -> None:
    """Delete a survey and its responses.

    Child rows are removed explicitly first so storage without foreign-key
    cascade ends up in the same state.
    """
    try:
        if db.get(Survey, survey_id) is None:
            raise SurveyNotFound(survey_id)
        db.execute(delete(SurveyResponse).where(SurveyResponse.survey_id == survey_id))
        db.execute(delete(Survey).where(Survey.survey_id == survey_id))
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Failed to delete survey %s", survey_id)
        raise DatabaseError("Failed to delete survey") from exc

    logger.info("Deleted survey %s", survey_id)

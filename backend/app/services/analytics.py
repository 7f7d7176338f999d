"""Analytics service — SQL aggregation queries for per-study survey metrics."""

import logging

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.study_config import StudyConfig
from app.models.survey import SURVEY_STATUSES, Survey
from app.models.survey_response import SurveyResponse
from app.schemas.surveys import StudyStats
from app.services.exceptions import DatabaseError, StudyNotFound

logger = logging.getLogger(__name__)


def get_study_stats(db: Session, study_id: str) -> StudyStats:
    """Compute study-level statistics.

    A study with no surveys yet reports zeros if it is configured, and
    raises StudyNotFound otherwise.
    """
    try:
        # --- Survey totals and completion window ---
        totals = db.execute(
            select(
                func.count(Survey.survey_id),
                func.count(func.distinct(Survey.patient_id)),
                func.min(Survey.completed_at),
                func.max(Survey.completed_at),
            ).where(Survey.study_id == study_id)
        ).one()
        total_surveys, unique_patients, first_at, last_at = totals

        if total_surveys == 0 and db.get(StudyConfig, study_id) is None:
            raise StudyNotFound(study_id)

        # --- Responses across the study ---
        total_responses = db.execute(
            select(func.count(SurveyResponse.response_id))
            .select_from(SurveyResponse)
            .join(Survey, SurveyResponse.survey_id == Survey.survey_id)
            .where(Survey.study_id == study_id)
        ).scalar_one()

        # --- Surveys by status ---
        status_rows = db.execute(
            select(Survey.status, func.count()).where(Survey.study_id == study_id).group_by(Survey.status)
        ).all()
    except SQLAlchemyError as exc:
        logger.exception("Failed to compute stats for study %s", study_id)
        raise DatabaseError("Failed to compute study statistics") from exc

    status_breakdown = {status: 0 for status in SURVEY_STATUSES}
    status_breakdown.update({row[0]: row[1] for row in status_rows})

    avg_responses = round(total_responses / total_surveys, 2) if total_surveys else 0.0
    completion_rate = round(status_breakdown["completed"] / total_surveys, 4) if total_surveys else None

    return StudyStats(
        study_id=study_id,
        total_surveys=total_surveys,
        unique_patients=unique_patients,
        avg_responses_per_survey=avg_responses,
        first_survey_at=first_at,
        last_survey_at=last_at,
        status_breakdown=status_breakdown,
        completion_rate=completion_rate,
    )

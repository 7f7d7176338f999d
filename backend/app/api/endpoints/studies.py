"""Study API — survey listing, export, analytics, and question configuration."""

import logging
import re
from typing import Literal

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.database import get_db
from app.schemas.studies import StudyConfigIn, StudyConfigOut
from app.schemas.surveys import Pagination, StudyStats, SurveyListResponse, SurveyOut, SurveySummary
from app.services.analytics import get_study_stats
from app.services.exceptions import StudyNotFound
from app.services.export import render_csv, render_json
from app.services.study_configs import get_study_config, upsert_study_config
from app.services.surveys import iter_export_rows, list_study_surveys, study_exists

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# GET /studies/{id}/surveys
# ---------------------------------------------------------------------------


@router.get("/{study_id}/surveys", response_model=SurveyListResponse)
def list_study_surveys_endpoint(
    study_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
):
    rows, has_more = list_study_surveys(db, study_id, page=page, page_size=limit)
    surveys = [
        SurveySummary(**SurveyOut.model_validate(survey).model_dump(), response_count=count)
        for survey, count in rows
    ]
    return SurveyListResponse(
        surveys=surveys,
        pagination=Pagination(page=page, limit=limit, has_more=has_more),
    )


# ---------------------------------------------------------------------------
# GET /studies/{id}/export
# ---------------------------------------------------------------------------


@router.get("/{study_id}/export")
def export_study_endpoint(
    study_id: str,
    format: Literal["json", "csv"] = Query("json"),
    db: Session = Depends(get_db),
):
    """Export every response of a study, one row per (survey, question) pair."""
    if not study_exists(db, study_id):
        raise StudyNotFound(study_id)

    rows = iter_export_rows(db, study_id)
    logger.info("Starting %s export for study %s", format, study_id)

    if format == "csv":
        safe_name = re.sub(r"[^A-Za-z0-9_.-]", "_", study_id)
        return StreamingResponse(
            render_csv(rows),
            media_type="text/csv",
            headers={"Content-Disposition": f'attachment; filename="study_{safe_name}_export.csv"'},
        )
    return StreamingResponse(render_json(rows), media_type="application/json")


# ---------------------------------------------------------------------------
# GET /studies/{id}/analytics
# ---------------------------------------------------------------------------


@router.get("/{study_id}/analytics", response_model=StudyStats)
def study_analytics_endpoint(study_id: str, db: Session = Depends(get_db)):
    """Survey totals, unique patients, response averages, and completion by status."""
    return get_study_stats(db, study_id)


# ---------------------------------------------------------------------------
# Study configuration
# ---------------------------------------------------------------------------


@router.get("/{study_id}/config", response_model=StudyConfigOut)
def get_study_config_endpoint(study_id: str, db: Session = Depends(get_db)):
    return get_study_config(db, study_id)


@router.put("/{study_id}/config", response_model=StudyConfigOut)
def put_study_config_endpoint(study_id: str, payload: StudyConfigIn, db: Session = Depends(get_db)):
    return upsert_study_config(db, study_id, payload)

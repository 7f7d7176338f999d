"""Survey API — submission and lookup."""

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.schemas.surveys import SubmitResult, SurveyDetail, SurveyOut, SurveyResponseOut
from app.services.surveys import get_survey, submit_survey
from app.services.validation import validate_for_study

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("", response_model=SubmitResult)
def submit_survey_endpoint(
    payload: Any = Body(..., description="Survey submission: patientId, studyId, responses, metadata"),
    db: Session = Depends(get_db),
):
    """Validate and store a survey with all of its responses in one transaction."""
    submission = validate_for_study(db, payload)
    survey_id = submit_survey(db, submission)
    return SubmitResult(success=True, survey_id=survey_id)


@router.get("/{survey_id}", response_model=SurveyDetail)
def get_survey_endpoint(survey_id: str, db: Session = Depends(get_db)):
    survey, responses = get_survey(db, survey_id)
    return SurveyDetail(
        survey=SurveyOut.model_validate(survey),
        responses=[SurveyResponseOut.model_validate(r) for r in responses],
    )

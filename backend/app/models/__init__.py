from app.models.study_config import StudyConfig
from app.models.survey import Survey
from app.models.survey_response import SurveyResponse

__all__ = [
    "StudyConfig",
    "Survey",
    "SurveyResponse",
]

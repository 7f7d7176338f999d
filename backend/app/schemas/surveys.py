import math
from datetime import datetime
from typing import Annotated, Any, Literal

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    StrictInt,
    StringConstraints,
    ValidationInfo,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticCustomError

ResponseType = Literal["text", "number", "boolean", "scale", "multiple_choice", "checkbox"]
SurveyStatus = Literal["in_progress", "completed", "abandoned"]

NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]

_SCALAR_TYPES = (str, int, float, bool)


def _is_finite(value: Any) -> bool:
    """False for NaN or infinity anywhere inside ``value``; JSON cannot carry them."""
    if isinstance(value, float):
        return math.isfinite(value)
    if isinstance(value, (list, tuple)):
        return all(_is_finite(item) for item in value)
    if isinstance(value, dict):
        return all(_is_finite(item) for item in value.values())
    return True


# ---------------------------------------------------------------------------
# Submission (request body)
# ---------------------------------------------------------------------------


class ResponseItem(BaseModel):
    """One answered question. ``questionId`` is 1-based."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    question_id: StrictInt
    question: str
    answer: Any
    response_type: ResponseType

    @field_validator("question_id")
    @classmethod
    def _question_id_in_range(cls, value: int, info: ValidationInfo) -> int:
        count = (info.context or {}).get("question_count")
        if count is not None and not 1 <= value <= count:
            raise PydanticCustomError(
                "question_id_range",
                "questionId must be between 1 and {count}",
                {"count": count},
            )
        return value

    @field_validator("answer")
    @classmethod
    def _answer_shape(cls, value: Any) -> Any:
        if value is None:
            raise PydanticCustomError("answer_null", "answer must not be null")
        if isinstance(value, list):
            if not all(isinstance(item, _SCALAR_TYPES) for item in value):
                raise PydanticCustomError(
                    "answer_list_items",
                    "answer list items must be strings, numbers or booleans",
                )
        elif not isinstance(value, _SCALAR_TYPES):
            raise PydanticCustomError(
                "answer_type",
                "answer must be a string, number, boolean or list",
            )
        if not _is_finite(value):
            raise PydanticCustomError("answer_not_finite", "answer must not be NaN or infinite")
        return value


class SubmissionMetadata(BaseModel):
    """Optional client metadata; unknown keys are kept."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    completed_at: datetime | None = None
    device_info: str | None = Field(None, max_length=1000)
    location: str | None = Field(None, max_length=1000)

    @model_validator(mode="after")
    def _extras_finite(self) -> "SubmissionMetadata":
        for key, value in (self.model_extra or {}).items():
            if not _is_finite(value):
                raise PydanticCustomError(
                    "metadata_not_finite",
                    "metadata value '{key}' must not be NaN or infinite",
                    {"key": key},
                )
        return self


class SurveySubmission(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    patient_id: NonEmptyStr
    study_id: NonEmptyStr
    responses: list[ResponseItem]
    metadata: SubmissionMetadata | None = None


class SubmitResult(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool = True
    survey_id: str


# ---------------------------------------------------------------------------
# Read models
# ---------------------------------------------------------------------------


class SurveyOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    survey_id: str
    patient_id: str
    study_id: str
    completed_at: datetime
    metadata: dict[str, Any] | None = Field(None, validation_alias=AliasChoices("metadata_", "metadata"))
    version: int
    status: SurveyStatus
    created_at: datetime | None = None


class SurveySummary(SurveyOut):
    response_count: int = 0


class SurveyResponseOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    response_id: str
    survey_id: str
    question_id: int
    question_text: str
    answer: Any = Field(validation_alias=AliasChoices("answer_value", "answer"))
    response_type: ResponseType
    created_at: datetime | None = None


class SurveyDetail(BaseModel):
    survey: SurveyOut
    responses: list[SurveyResponseOut]


class Pagination(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    page: int
    limit: int
    has_more: bool


class SurveyListResponse(BaseModel):
    surveys: list[SurveySummary]
    pagination: Pagination


# ---------------------------------------------------------------------------
# GET /studies/{id}/analytics
# ---------------------------------------------------------------------------


class StudyStats(BaseModel):
    """Aggregate statistics for one study."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    study_id: str
    total_surveys: int
    unique_patients: int
    avg_responses_per_survey: float
    first_survey_at: datetime | None
    last_survey_at: datetime | None

    # {"in_progress": N, "completed": N, "abandoned": N}
    status_breakdown: dict[str, int]
    completion_rate: float | None  # completed / total surveys

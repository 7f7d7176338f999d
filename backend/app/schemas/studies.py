from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.schemas.surveys import ResponseType

# ---------------------------------------------------------------------------
# Question definitions
# ---------------------------------------------------------------------------


class QuestionConstraints(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    min: int | float | None = None
    max: int | float | None = None
    options: list[str | int | float | bool] | None = Field(
        None,
        description="Allowed answers (multiple_choice and checkbox only)",
    )
    max_length: int | None = Field(None, ge=1)


class QuestionDependency(BaseModel):
    """Show the question only when another question has ``value``. Not enforced server-side."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    question_id: int = Field(..., ge=1)
    value: Any


class QuestionDefinition(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    type: ResponseType
    text: str = Field(..., min_length=1, max_length=1000)
    required: bool = True
    constraints: QuestionConstraints | None = None
    depends_on: QuestionDependency | None = None


class StudySettings(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    timeout_minutes: int | None = Field(None, ge=1)
    allow_resubmission: bool = True


# ---------------------------------------------------------------------------
# Study config CRUD schemas
# ---------------------------------------------------------------------------


class StudyConfigIn(BaseModel):
    name: str | None = Field(None, max_length=255)
    questions: list[QuestionDefinition] = Field(..., min_length=1)
    settings: StudySettings = Field(default_factory=StudySettings)


class StudyConfigOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    study_id: str
    name: str | None
    questions: list[dict[str, Any]]
    settings: dict[str, Any]
    created_at: datetime | None = None
    updated_at: datetime | None = None

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import Enum, ForeignKey, Index, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base
from app.services.answers import decode_answer

RESPONSE_TYPES = ("text", "number", "boolean", "scale", "multiple_choice", "checkbox")


class SurveyResponse(Base):
    """A single answered question within a survey.

    ``answer`` holds the JSON text of the submitted value:
        "\\"Sometimes\\""   # text / multiple_choice
        "7"               # number / scale
        "true"            # boolean
        "[\\"a\\", \\"b\\"]"  # checkbox
    Use ``answer_value`` for the decoded value.
    """

    __tablename__ = "responses"
    __table_args__ = (
        UniqueConstraint("survey_id", "question_id", name="uq_responses_survey_question"),
        Index("ix_responses_survey_id", "survey_id"),
    )

    response_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    survey_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("surveys.survey_id", ondelete="CASCADE"), nullable=False
    )
    question_id: Mapped[int] = mapped_column(Integer, nullable=False)
    question_text: Mapped[str] = mapped_column(Text, nullable=False)
    answer: Mapped[str] = mapped_column(Text, nullable=False)
    response_type: Mapped[str] = mapped_column(Enum(*RESPONSE_TYPES, name="response_type"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now())

    survey: Mapped["Survey"] = relationship(back_populates="responses")

    @property
    def answer_value(self) -> Any:
        return decode_answer(self.answer, self.response_type)

    def __repr__(self) -> str:
        return f"<SurveyResponse survey={self.survey_id} q={self.question_id}>"

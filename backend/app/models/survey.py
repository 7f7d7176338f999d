import uuid
from datetime import datetime

from sqlalchemy import Enum, Index, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base, JSONType

SURVEY_STATUSES = ("in_progress", "completed", "abandoned")


class Survey(Base):
    """One survey submission: the header row owning the per-question responses.

    ``version`` counts submissions per (patient, study), starting at 1.
    ``completed_at`` is stored as naive UTC.
    """

    __tablename__ = "surveys"
    __table_args__ = (
        UniqueConstraint("patient_id", "study_id", "version", name="uq_surveys_patient_study_version"),
        Index("ix_surveys_study_id", "study_id"),
        Index("ix_surveys_patient_id", "patient_id"),
        Index("ix_surveys_study_completed", "study_id", "completed_at"),
    )

    survey_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    patient_id: Mapped[str] = mapped_column(String(255), nullable=False)
    study_id: Mapped[str] = mapped_column(String(255), nullable=False)
    completed_at: Mapped[datetime] = mapped_column(nullable=False)
    metadata_: Mapped[dict | None] = mapped_column("metadata", JSONType)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    status: Mapped[str] = mapped_column(
        Enum(*SURVEY_STATUSES, name="survey_status"),
        nullable=False,
        default="completed",
        server_default="completed",
    )
    created_at: Mapped[datetime] = mapped_column(server_default=func.now())

    responses: Mapped[list["SurveyResponse"]] = relationship(
        back_populates="survey",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="SurveyResponse.question_id",
    )

    def __repr__(self) -> str:
        return f"<Survey {self.survey_id} patient={self.patient_id} study={self.study_id}>"

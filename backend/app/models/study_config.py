from datetime import datetime

from sqlalchemy import String, func
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base, JSONType


class StudyConfig(Base):
    """Per-study questionnaire definition.

    ``questions`` is an ordered list; position i holds question id i + 1:
        {
            "type": "scale",
            "text": "Rate your pain today",
            "required": true,
            "constraints": {"min": 0, "max": 10},
            "dependsOn": {"questionId": 3, "value": true}   # optional
        }
    ``settings`` carries {"timeoutMinutes": int | null, "allowResubmission": bool}.
    """

    __tablename__ = "study_configs"

    study_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    name: Mapped[str | None] = mapped_column(String(255))
    questions: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    settings: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(server_default=func.now(), onupdate=func.now())

    @property
    def allow_resubmission(self) -> bool:
        return bool((self.settings or {}).get("allowResubmission", True))

    def __repr__(self) -> str:
        return f"<StudyConfig {self.study_id} ({len(self.questions or [])} questions)>"

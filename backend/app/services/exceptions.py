"""Survey service exceptions."""


class SurveyError(Exception):
    """Base exception for survey operations."""


class SurveyValidationError(SurveyError):
    """Raised when a submission fails validation.

    ``details`` lists every problem found, one ``{"field", "message"}`` dict each.
    """

    def __init__(self, details: list[dict[str, str]]) -> None:
        self.details = details
        super().__init__(f"Validation failed with {len(details)} error(s)")


class SurveyNotFound(SurveyError):
    """Raised when a survey id does not exist."""

    def __init__(self, survey_id: str) -> None:
        self.survey_id = survey_id
        super().__init__(f"Survey '{survey_id}' not found")


class StudyNotFound(SurveyError):
    """Raised when a study has neither surveys nor a configuration."""

    def __init__(self, study_id: str) -> None:
        self.study_id = study_id
        super().__init__(f"Study '{study_id}' not found")


class ResubmissionNotAllowed(SurveyError):
    """Raised when a study refuses a second submission from the same patient."""

    def __init__(self, patient_id: str, study_id: str) -> None:
        self.patient_id = patient_id
        self.study_id = study_id
        super().__init__(f"Patient '{patient_id}' has already submitted a survey for study '{study_id}'")


class DatabaseError(SurveyError):
    """Raised when the store fails to read or write. Writes are rolled back first."""

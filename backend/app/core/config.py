from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    PROJECT_NAME: str = "Survey Collection API"
    API_PREFIX: str = "/api"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # SQLite for local use; point at PostgreSQL in deployment
    DATABASE_URL: str = "sqlite:///./patient_data.db"

    CORS_ORIGINS: list[str] = ["http://localhost:3000"]

    # Fixed question count when a study has no question configuration
    SURVEY_QUESTION_COUNT: int = 20

    # Listing
    DEFAULT_PAGE_SIZE: int = 50
    MAX_PAGE_SIZE: int = 100

    # Export: rows fetched per round trip while streaming
    EXPORT_BATCH_SIZE: int = 500

    model_config = {"env_file": ".env", "case_sensitive": True}


settings = Settings()

# answer_eval/core/config.py
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    PROJECT_NAME: str = "Answer Evaluation Service"

    # Database
    # Use PostgreSQL for production
    DATABASE_URL: str = "sqlite:///./answer_eval.db"

    # Redis (for the OCR sweep queue)
    REDIS_URL: str = "redis://localhost:6379/0"

    LOG_LEVEL: str = "INFO"

    # Submission limits
    MAX_ATTEMPTS_PER_QUESTION: int = 5
    SUBMISSION_CREATE_RETRIES: int = 3
    MAX_IMAGES_PER_SUBMISSION: int = 10
    DEFAULT_MAX_MARKS: int = 10

    # OCR pacing, provider rate limiting
    OCR_IMAGE_DELAY_MS: int = 1000
    OCR_BATCH_DELAY_MS: int = 2000

    # Every provider call carries this timeout
    PROVIDER_TIMEOUT_SECONDS: float = 30.0

    # Mistral OCR
    MISTRAL_API_KEY: str | None = None
    MISTRAL_OCR_MODEL: str = "mistral-ocr-latest"

    # Gemini (primary evaluator)
    GEMINI_API_KEY: str | None = None
    GEMINI_MODEL: str = "gemini-2.0-flash"

    # OpenAI (secondary evaluator)
    OPENAI_API_KEY: str | None = None
    # None means the SDK default endpoint
    OPENAI_BASE_URL: str | None = None
    OPENAI_MODEL: str = "gpt-4o-mini"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()

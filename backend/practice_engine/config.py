"""Application configuration settings."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = "Adaptive Practice Engine"
    debug: bool = False
    log_level: str = "INFO"

    # Paths
    base_dir: Path = Path(__file__).parent.parent
    data_dir: Path = base_dir / "data"
    questions_dir: Path = data_dir / "questions"
    skip_seeding: bool = False

    # Database
    database_url: str = f"sqlite+aiosqlite:///{data_dir / 'practice.db'}"

    # Sessions
    allowed_session_sizes: list[int] = Field(default_factory=lambda: [10, 20, 50])
    mcq_seconds_per_question: int = 72  # 2 hours / 100 questions
    mains_seconds_per_question: int = 450
    persistence_max_retries: int = 3
    attempt_record_retries: int = 1

    # Scoring
    weak_topic_threshold: float = 0.5
    strong_topic_threshold: float = 0.7
    min_topic_attempts: int = 2
    negative_mark_per_wrong: float = 0.0
    unanswered_penalty: float = 0.0

    # Adaptive recommendation
    recommendation_window: int = 5

    # Distractors
    distractor_min_length: int = 5
    distractor_max_length: int = 500

    # AI providers (optional - for distractor generation and difficulty prediction)
    openai_api_key: str | None = None
    anthropic_api_key: str | None = None
    gemini_api_key: str | None = None
    openai_model: str = "gpt-4o-mini"
    anthropic_model: str = "claude-3-haiku-20240307"
    gemini_model: str = "gemini-1.5-flash"
    generation_temperature: float = 0.7
    generation_max_tokens: int = 1500
    prediction_temperature: float = 0.3


settings = Settings()

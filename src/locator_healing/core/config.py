from pydantic_settings import BaseSettings
from pydantic import Field, validator
from dotenv import load_dotenv

load_dotenv()


class Settings(BaseSettings):
    # Healing configuration
    SELF_HEALING_ENABLED: bool = Field(default=True, description="Enable/disable locator healing globally")
    HEALING_CONFIG_PATH: str = Field(default="config/locator_healing.yaml", description="Path to the healing YAML configuration")
    ML_SCORER_TIMEOUT: float = Field(default=2.0, description="Timeout for the injected ML scorer (in seconds)")

    # Learning store
    LEARNING_STORE_PATH: str = Field(default="data/healing_learning.db", description="SQLite file backing the learning store")

    # Logging
    LOG_LEVEL: str = Field(default="INFO", description="Root level for healing loggers")
    LOG_DIR: str = Field(default="logs", description="Directory for rotating healing log files")

    @validator('LOG_LEVEL')
    def validate_log_level(cls, v):
        """Validate that LOG_LEVEL is a standard logging level name."""
        if v.upper() not in ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']:
            raise ValueError(f"LOG_LEVEL must be a standard logging level, got '{v}'")
        return v.upper()

    @validator('ML_SCORER_TIMEOUT')
    def validate_ml_scorer_timeout(cls, v):
        """Validate that ML_SCORER_TIMEOUT is positive."""
        if v <= 0:
            raise ValueError(f"ML_SCORER_TIMEOUT must be positive, got {v}")
        return v

    @validator('LEARNING_STORE_PATH')
    def validate_learning_store_path(cls, v):
        """Validate that LEARNING_STORE_PATH is not blank."""
        if not v or not v.strip():
            raise ValueError("LEARNING_STORE_PATH must not be empty")
        return v.strip()

    class Config:
        env_file = ".env"
        env_file_encoding = 'utf-8'
        extra = 'allow'  # Allow extra fields from .env file

settings = Settings()

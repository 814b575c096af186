"""
Configuration management for the story reading engine
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Server Configuration
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)
    debug: bool = Field(default=False)
    log_level: Literal["DEBUG", "VERBOSE", "INFO", "WARNING", "ERROR", "CRITICAL"] = (
        Field(default="INFO")
    )
    log_file: str = Field(default="", description="Optional log file path")

    # Replay Configuration
    replay_step_delay: float = Field(
        default=1.5,
        ge=0,
        description="Seconds a replayed node stays on screen before the recorded choice is applied",
    )

    # Database Configuration
    database_path: str = Field(
        default="data/storyreader.db",
        description="SQLite database file path for stories, progress and saved paths",
    )

    class Config:
        env_file = ".env"
        case_sensitive = False


# Global settings instance
settings = Settings()

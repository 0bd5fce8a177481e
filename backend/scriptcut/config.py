"""Application configuration."""
from pathlib import Path
from typing import Literal, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8"
    )

    # App settings
    app_name: str = "ScriptCut"
    debug: bool = True

    # Server settings
    host: str = "0.0.0.0"
    port: int = 8000

    # Data directories
    data_dir: Path = Path("./data")

    # Default pipeline mode
    pipeline_mode: Literal["highlight", "dialogue", "story"] = "highlight"

    # Scoring oracle (any OpenAI-compatible chat endpoint)
    scorer_base_url: str = "http://localhost:11434/v1"
    scorer_model: str = "phi3"
    scorer_api_key: Optional[str] = None
    scorer_temperature: float = 0.7
    scorer_top_p: float = 0.9
    scorer_seed: Optional[int] = None
    scorer_timeout_seconds: float = 20.0
    scorer_max_concurrency: int = 4

    # Frontend
    frontend_url: str = "http://localhost:5173"


settings = Settings()

from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    fraudshield_data_dir: Path = Path.home() / ".fraudshield" / "data"
    fraudshield_models_dir: Path = Path.home() / ".fraudshield" / "models"
    sqlite_filename: str = "fraudshield.db"
    presets_url: str = (
        "https://raw.githubusercontent.com/lakpriya1s/"
        "llm-financial-fraud-detection/refs/heads/main/presets.json"
    )
    presets_cache_key: str = "fraudshield_presets"
    hub_endpoint: str = "https://huggingface.co"
    cancel_settle_seconds: float = 0.3  # lets in-flight callbacks observe cancellation
    download_chunk_size: int = 1024 * 1024
    http_timeout: float = 30.0
    log_level: str = "warning"

    model_config = {"env_prefix": "FRAUDSHIELD_"}


settings = Settings()

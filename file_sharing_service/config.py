from pydantic_settings import BaseSettings, SettingsConfigDict
from pathlib import Path

env_path = Path(__file__).parent / ".env"

class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite+aiosqlite:///./file_sharing.db"
    SHARE_HOST: str = "0.0.0.0"
    SHARE_PORT: int = 8000
    STORAGE_BASE_PATH: Path = Path("filestorage_share")
    SECRET_KEY: str = "change-me"
    UPLOAD_URL_TTL_SECONDS: int = 900
    # 0 disables the background sweeper; POST /api/cleanup still works
    CLEANUP_INTERVAL_SECONDS: int = 300
    # longer than the longest expiration window
    ORPHAN_BLOB_MAX_AGE_SECONDS: int = 8 * 24 * 3600
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_file=env_path, extra='ignore')

settings = Settings()

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    MEMORY_LIMIT: str = "4GB"
    THREADS: int = 4
    IMPORT_BATCH_SIZE: int = 1000
    PREVIEW_ROWS: int = 10
    QUERY_LIMIT: int = 1000
    EVENT_BUFFER_SIZE: int = 1000
    CORS_ORIGINS: str = "*"
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="WORKBENCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


settings = Settings()

from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application configuration, read once from the environment (and .env).
    Core identifiers have no defaults: a missing one fails at startup.
    Collections added later default to their conventional names.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # --- Appwrite connection ---
    appwrite_endpoint: str = Field(..., description="Appwrite endpoint, e.g. https://cloud.appwrite.io/v1")
    appwrite_project_id: str = Field(..., description="Appwrite project ID")
    appwrite_api_key: str = Field(..., description="Administrative API key")

    # --- Appwrite resources ---
    appwrite_database_id: str = Field(..., description="Database holding all collections")
    groups_collection_id: str = Field(...)
    messages_collection_id: str = Field(...)
    user_profiles_collection_id: str = Field(...)
    appwrite_bucket_id: str = Field(..., description="Storage bucket for group files")
    group_files_collection_id: str = Field(default="group_files")
    personal_notes_collection_id: str = Field(default="personal_notes")
    focus_sessions_collection_id: str = Field(default="focus_sessions")

    # --- Application ---
    app_url: str = Field(..., description="Public base URL, used for OAuth callbacks")
    environment: str = Field(default="development")
    log_level: str = Field(default="INFO")
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])
    member_lookup_concurrency: int = Field(default=5, ge=1)

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def base_url(self) -> str:
        return self.app_url.rstrip("/")


@lru_cache
def get_settings() -> Settings:
    """Settings singleton. Raises pydantic.ValidationError listing missing variables."""
    return Settings()

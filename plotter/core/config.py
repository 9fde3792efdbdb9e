from typing import Annotated, Any, Literal

from pydantic import AnyUrl, BeforeValidator, HttpUrl, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


def parse_cors(v: Any) -> list[str] | str:
    if isinstance(v, str) and not v.startswith("["):
        return [i.strip() for i in v.split(",") if i.strip()]
    elif isinstance(v, list | str):
        return v
    raise ValueError(v)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",
    )
    API_V1_STR: str = "/api/v1"
    PROJECT_NAME: str = "Plotter Editor"
    ENVIRONMENT: Literal["local", "staging", "production"] = "local"
    SENTRY_DSN: HttpUrl | None = None

    BACKEND_CORS_ORIGINS: Annotated[
        list[AnyUrl] | str, BeforeValidator(parse_cors)
    ] = []

    @computed_field  # type: ignore[prop-decorator]
    @property
    def all_cors_origins(self) -> list[str]:
        return [str(origin).rstrip("/") for origin in self.BACKEND_CORS_ORIGINS]

    # Script execution
    SCRIPT_EXEC_TIMEOUT_MS: int = 5000
    SCRIPT_MAX_WORKERS: int = 4
    SURFACE_DPI: int = 96

    # Render orchestration (quiet windows in milliseconds)
    EDIT_DEBOUNCE_MS: int = 1000
    LIVE_DEBOUNCE_MS: int = 500
    LIVE_PREVIEW: bool = False

    # Session storage: memory | file | redis
    STORAGE_BACKEND: Literal["memory", "file", "redis"] = "file"
    STORAGE_DIR: str = ".plotter"
    STORAGE_QUOTA_BYTES: int = 5 * 1024 * 1024
    STORAGE_KEY_PREFIX: str = "plotter_"
    STORAGE_WRITE_LEGACY_KEYS: bool = False

    # Redis (only used when STORAGE_BACKEND=redis)
    CACHE_ENABLED: bool = True
    REDIS_URL: str = "redis://localhost:6379/0"

    @computed_field  # type: ignore[prop-decorator]
    @property
    def redis_url(self) -> str:
        return self.REDIS_URL


settings = Settings()  # type: ignore

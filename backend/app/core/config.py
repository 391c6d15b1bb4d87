from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = Field(default="development", validation_alias="APP_ENV")

    allow_public_register: bool = Field(default=True, validation_alias="ALLOW_PUBLIC_REGISTER")
    password_min_length: int = Field(default=6, validation_alias="PASSWORD_MIN_LENGTH")
    faculty_verification_code: str = Field(default="AUS_FACULTY", validation_alias="FACULTY_VERIFICATION_CODE")

    # Unset DATABASE_URL means the local JSON store is used (STORAGE_BACKEND=auto).
    storage_backend: str = Field(default="auto", validation_alias="STORAGE_BACKEND")
    database_url: str | None = Field(default=None, validation_alias="DATABASE_URL")
    local_store_dir: str = Field(default=".au_store", validation_alias="LOCAL_STORE_DIR")

    redis_url: str = Field(
        default="redis://localhost:6379/0",
        validation_alias="REDIS_URL",
    )

    jwt_secret_key: str = Field(default="change-me", validation_alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field(default="HS256", validation_alias="JWT_ALGORITHM")
    jwt_access_token_minutes: int = Field(default=60 * 12, validation_alias="JWT_ACCESS_TOKEN_MINUTES")
    jwt_issuer: str = Field(default="au-assess", validation_alias="JWT_ISSUER")

    cors_allow_origins: str = Field(default="http://localhost:3000", validation_alias="CORS_ALLOW_ORIGINS")
    cors_allow_methods: str = Field(default="*", validation_alias="CORS_ALLOW_METHODS")
    cors_allow_headers: str = Field(default="*", validation_alias="CORS_ALLOW_HEADERS")
    trust_proxy_headers: bool = Field(default=False, validation_alias="TRUST_PROXY_HEADERS")
    rate_limit_enabled: bool = Field(default=True, validation_alias="RATE_LIMIT_ENABLED")

    quiz_feedback_delay_seconds: float = Field(default=1.2, validation_alias="QUIZ_FEEDBACK_DELAY_SECONDS")
    quiz_session_grace_seconds: int = Field(default=15 * 60, validation_alias="QUIZ_SESSION_GRACE_SECONDS")

    ai_enabled: bool = Field(default=True, validation_alias="AI_ENABLED")
    gemini_api_key: str | None = Field(default=None, validation_alias="GEMINI_API_KEY")
    gemini_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        validation_alias="GEMINI_BASE_URL",
    )
    gemini_chat_model: str = Field(default="gemini-3-flash-preview", validation_alias="GEMINI_CHAT_MODEL")
    gemini_generate_model: str = Field(default="gemini-3-pro-preview", validation_alias="GEMINI_GENERATE_MODEL")

    gemini_timeout_connect: float = Field(default=3.0, validation_alias="GEMINI_TIMEOUT_CONNECT")
    gemini_timeout_read: float = Field(default=20.0, validation_alias="GEMINI_TIMEOUT_READ")
    gemini_timeout_write: float = Field(default=10.0, validation_alias="GEMINI_TIMEOUT_WRITE")
    gemini_temperature: float = Field(default=0.4, validation_alias="GEMINI_TEMPERATURE")


settings = Settings()


def _is_prod() -> bool:
    return (settings.app_env or "").strip().lower() in {"prod", "production"}


def resolved_storage_backend() -> str:
    backend = (settings.storage_backend or "auto").strip().lower()
    if backend in {"sql", "local"}:
        return backend
    return "sql" if (settings.database_url or "").strip() else "local"


if _is_prod():
    if not settings.jwt_secret_key or settings.jwt_secret_key.strip().lower() in {"change-me", "your-secret", "secret"}:
        raise RuntimeError("JWT_SECRET_KEY must be set to a strong value in production")
    if (settings.faculty_verification_code or "").strip() in {"", "AUS_FACULTY"}:
        raise RuntimeError("FACULTY_VERIFICATION_CODE must be set to a non-default value in production")
    if settings.redis_url.strip() == "redis://localhost:6379/0":
        raise RuntimeError("REDIS_URL must be set in production")

    db_url_l = (settings.database_url or "").strip().lower()
    if any(s in db_url_l for s in {"//postgres:postgres@", "//admin:admin@"}):
        raise RuntimeError("DATABASE_URL must not use default credentials in production")

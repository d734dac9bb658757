from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Database (reference data service)
    DATABASE_URL: str = "sqlite:///./alumni_connect.db"

    # JWT Authentication
    SECRET_KEY: str = "your-secret-key-change-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # Sign-up rules
    ALLOW_ADMIN_SIGNUP: bool = True
    MIN_PASSWORD_LENGTH: int = 6

    # Application
    APP_NAME: str = "AlumniConnect"
    DEBUG: bool = True
    BACKEND_CORS_ORIGINS: str = (
        "http://localhost:5173,"
        "http://127.0.0.1:5173"
    )

    # Client side of the data service
    DATA_SERVICE_URL: str = "http://localhost:8000/api/v1"
    DATA_SERVICE_TIMEOUT: float = 10.0
    SESSION_STORAGE_PATH: str = ""  # empty keeps the session token in memory

    LOG_LEVEL: str = "INFO"


settings = Settings()

"""
Application configuration with environment variables.
"""
from pydantic_settings import BaseSettings
from pydantic import ConfigDict, field_validator
from typing import Optional, List


class Settings(BaseSettings):
    model_config = ConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    # Application
    APP_NAME: str = "Jobwork Marketplace"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    SECRET_KEY: str = "your-secret-key-change-in-production"

    # Storage backend: "sql" or "memory". Chosen once at startup.
    STORAGE_BACKEND: str = "sql"

    # Database
    POSTGRES_USER: str = "jobwork"
    POSTGRES_PASSWORD: str = "jobwork"
    POSTGRES_HOST: str = "postgres"
    POSTGRES_PORT: str = "5432"
    POSTGRES_DB: str = "jobwork"
    DATABASE_URL: Optional[str] = None

    # JWT Settings
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:5173", "http://localhost:5000", "http://localhost:3000"]

    # Auth
    BCRYPT_ROUNDS: int = 12
    ALLOW_PUBLIC_REGISTRATION: bool = True
    # Legacy clients identify themselves with an X-User-Email header
    ALLOW_LEGACY_EMAIL_HEADER: bool = False

    # Uploads (decoded byte length, not the client-reported size)
    MAX_DOCUMENT_UPLOAD_BYTES: int = 5 * 1024 * 1024
    MAX_IMAGE_UPLOAD_BYTES: int = 10 * 1024 * 1024

    # Workflow
    INVITE_RESPONSE_DAYS: int = 7
    DEFAULT_DEPOSIT_PERCENT: int = 30

    # Startup
    SEED_SKUS: bool = True
    ADMIN_BOOTSTRAP_EMAIL: Optional[str] = None
    ADMIN_BOOTSTRAP_PASSWORD: Optional[str] = None

    @field_validator('STORAGE_BACKEND')
    @classmethod
    def validate_storage_backend(cls, v: str) -> str:
        v = v.lower().strip()
        if v not in ("sql", "memory"):
            raise ValueError("STORAGE_BACKEND must be 'sql' or 'memory'")
        return v

    @field_validator('DATABASE_URL', mode='before')
    @classmethod
    def assemble_db_url(cls, v: Optional[str], info) -> str:
        if isinstance(v, str) and v:
            return v

        data = info.data
        user = data.get("POSTGRES_USER", "jobwork")
        password = data.get("POSTGRES_PASSWORD", "jobwork")
        host = data.get("POSTGRES_HOST", "postgres")
        port = data.get("POSTGRES_PORT", "5432")
        db = data.get("POSTGRES_DB", "jobwork")

        return f"postgresql://{user}:{password}@{host}:{port}/{db}"

    @field_validator('SECRET_KEY')
    @classmethod
    def validate_secret_key(cls, v: str, info) -> str:
        """Reject weak SECRET_KEY in production, warn in development."""
        weak_keys = {
            "your-secret-key-change-in-production",
            "change-me-in-production",
            "secret",
            "changeme",
        }
        is_weak = v in weak_keys or len(v) < 32
        if is_weak:
            debug = info.data.get("DEBUG", False)
            if not debug:
                raise ValueError(
                    "SECRET_KEY is weak or default. "
                    "Generate a strong key with: openssl rand -hex 32"
                )
            import warnings
            warnings.warn(
                "SECRET_KEY is weak or default! Set a strong key before deploying.",
                UserWarning,
                stacklevel=2,
            )
        return v


settings = Settings()

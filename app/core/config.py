from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    DATABASE_URL: str

    # If DEV and you hit SSL cert issues on Windows, set DB_SSL_VERIFY=false in .env
    DB_SSL_VERIFY: bool = True

    SECRET_KEY: str
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    ENV: str = "dev"  # "dev" or "prod"
    TESTING: bool = False

    # --- PASSWORD HASHING ---
    BCRYPT_ROUNDS: int = 10
    ADMIN_BCRYPT_ROUNDS: int = 12  # hod / admin accounts live longer

    # --- REDIS / QUEUE ---
    REDIS_URL: str | None = None
    CELERY_BROKER_URL: str = "redis://127.0.0.1:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://127.0.0.1:6379/1"
    WORKER_CONCURRENCY: int = 8
    REGISTRATION_MAX_ATTEMPTS: int = 5
    REGISTRATION_BACKOFF_SECONDS: int = 1
    REGISTRATION_DEDUPE_TTL_SECONDS: int = 3600

    # --- DASHBOARD CACHE ---
    DASHBOARD_CACHE_TTL_SECONDS: int = 300

    # --- PUSH NOTIFICATIONS (FCM) ---
    FIREBASE_SERVICE_ACCOUNT: str | None = None  # raw JSON
    FIREBASE_CREDENTIALS_FILE: str | None = None
    PUSH_TIMEOUT_SECONDS: float = 5.0
    STALE_DEVICE_DAYS: int = 90

    FRONTEND_URL: str = "http://localhost:5173"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

settings = Settings()

from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    DATABASE_URL: str

    # If DEV and you hit SSL cert issues on Windows, set DB_SSL_VERIFY=false in .env
    DB_SSL_VERIFY: bool = True

    SECRET_KEY: str
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # --- OUTPASS VERIFICATION TOKENS ---
    # Falls back to SECRET_KEY when not set
    OUTPASS_TOKEN_SECRET: str | None = None
    OUTPASS_TOKEN_TTL_HOURS: int = 24

    # --- OUTPASS POLICY DEFAULTS (used until the DB row exists) ---
    ALLOW_OUTPASS_REQUESTS: bool = True
    OVERDUE_THRESHOLD: int = 3

    # --- BACKGROUND JOBS ---
    JOB_SECRET: str | None = None
    OVERDUE_SWEEP_INTERVAL_SECONDS: int = 300  # 0 disables the in-process timer

    # Rate limiter storage; in-memory when unset
    REDIS_URL: str | None = None
    RATE_LIMIT_ENABLED: bool = True

    SUPER_ADMIN_EMAIL: str | None = None
    SUPER_ADMIN_PASSWORD: str | None = None
    SUPER_ADMIN_NAME: str | None = "Super Admin"
    ENV: str = "dev"  # "dev" or "prod"

    # --- EMAIL SETTINGS ---
    SMTP_HOST: str | None = None
    SMTP_PORT: int = 2525  # Default to Mailtrap port
    SMTP_USER: str | None = None
    SMTP_PASSWORD: str | None = None
    EMAILS_FROM_EMAIL: str = "no-reply@campus-outpass.local"
    EMAILS_FROM_NAME: str = "Campus Outpass"
    FRONTEND_URL: str = "http://localhost:5173" # For login link

    @property
    def outpass_token_secret(self) -> str:
        return self.OUTPASS_TOKEN_SECRET or self.SECRET_KEY

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

settings = Settings()

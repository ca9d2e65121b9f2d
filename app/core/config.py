from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    PROJECT_NAME: str = "AI Receptionist Scheduling Backend"

    # Server
    PORT: int = 8000
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Security
    SECRET_KEY: str = "dev_secret_key"
    WEBHOOK_TOKEN: str = ""

    # Supabase
    SUPABASE_URL: str = ""
    SUPABASE_KEY: str = ""

    # Resend
    RESEND_API_KEY: str = ""
    FROM_EMAIL: str = "AI Receptionist <noreply@example.com>"

    # Retell
    RETELL_API_KEY: str = ""
    RETELL_BASE_URL: str = "https://api.retellai.com"
    CALL_FETCH_TIMEOUT_SECONDS: float = 10.0

    # Google
    GOOGLE_CLIENT_ID: str = ""
    GOOGLE_CLIENT_SECRET: str = ""
    GOOGLE_REDIRECT_URI: str = "http://localhost:8000/oauth/google/callback"
    GOOGLE_CREDENTIALS_JSON: str = ""

    # Scheduling
    DEFAULT_TIMEZONE: str = "America/Toronto"

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

settings = Settings()

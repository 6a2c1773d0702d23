from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    # N8N Configuration
    N8N_BASE_URL: str = "https://n8n.dinel.at"
    N8N_API_KEY: str = ""
    N8N_WEBHOOK_URL: str = ""
    N8N_WEBHOOK_TEST_URL: str = ""
    N8N_TIMEOUT_SECONDS: float = 10.0

    # Supabase Configuration
    SUPABASE_URL: str = ""
    SUPABASE_KEY: str = ""
    SUPABASE_SERVICE_KEY: str = ""
    SUPABASE_JWT_SECRET: str = ""

    # API Configuration
    API_V1_PREFIX: str = "/api/v1"
    PROJECT_NAME: str = "BSM Automation"
    BACKEND_CORS_ORIGINS: List[str] = ["http://localhost:3000"]

    # Logging
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()

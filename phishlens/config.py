from pydantic_settings import BaseSettings
from typing import List, Optional

class Settings(BaseSettings):
    # API Configuration
    APP_NAME: str = "PhishLens"
    VERSION: str = "1.0.0"
    API_PREFIX: str = "/api/v1"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:5173"]

    # Oracle (OpenAI-compatible chat completions)
    ORACLE_ENABLED: bool = True
    ORACLE_API_URL: str = "https://api.perplexity.ai/chat/completions"
    ORACLE_API_KEY: Optional[str] = None
    ORACLE_MODEL: str = "sonar-pro"
    ORACLE_TIMEOUT_SECONDS: float = 20
    ORACLE_TIMEOUT_GRACE_SECONDS: float = 2
    ORACLE_TEMPERATURE: float = 0.3
    ORACLE_MAX_TOKENS: int = 500

    # Analysis Settings
    MAX_THREAT_INDICATORS: int = 8
    BATCH_MAX_ITEMS: int = 50
    BATCH_MAX_WORKERS: int = 8

    # Optional JSON file replacing the built-in keyword/brand tables
    DICTIONARY_PATH: Optional[str] = None

    class Config:
        env_file = ".env"
        case_sensitive = True

settings = Settings()

from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    app_name: str = "Creator Match"
    log_level: str = "INFO"
    cors_origins: list[str] = ["http://localhost:3000"]

    database_url: str = "sqlite+aiosqlite:///./creator_match.db"
    # Elevated handle used for match writes; falls back to database_url
    admin_database_url: str = ""

    openai_api_key: str = ""
    openai_base_url: str = "https://api.openai.com/v1"
    openai_model: str = "gpt-4o-mini"

    jwt_secret: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 60

    # Search tuning
    max_results: int = 50
    fallback_min_results: int = 6
    fallback_match_score: int = 33
    bitcoin_categories: list[str] = [
        "bitcoin", "btc-only", "cryptocurrency", "crypto", "blockchain", "defi", "web3",
    ]

    class Config:
        env_file = ".env"

    @property
    def elevated_database_url(self) -> str:
        return self.admin_database_url or self.database_url


@lru_cache()
def get_settings() -> Settings:
    return Settings()

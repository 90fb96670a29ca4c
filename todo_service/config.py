from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    # Application
    app_name: str = "Todo Service"
    version: str = "1.0.0"
    debug: bool = False
    environment: str = "development"
    host: str = "0.0.0.0"
    port: int = 5000

    # Database (DATABASE_URL wins over the individual DB_* fields)
    database_url: Optional[str] = None
    db_driver: str = "postgresql+psycopg2"
    db_host: str = "localhost"
    db_port: int = 5432
    db_user: str = "postgres"
    db_password: str = ""
    db_name: str = "todo"
    db_ssl: bool = False

    # Database pool settings
    db_pool_size: int = 10
    db_max_overflow: int = 0
    db_pool_pre_ping: bool = True
    db_connect_timeout: int = 10

    seed_sample_data: bool = True

    # Logging
    log_level: str = "INFO"

    # CORS
    cors_origins: list[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]
    cors_credentials: bool = True
    cors_methods: list[str] = ["GET", "POST", "PUT", "DELETE"]
    cors_headers: list[str] = ["*"]

    # Client
    api_url: str = "http://localhost:5000"
    request_timeout: float = 15.0

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    def get_database_url(self) -> str:
        """Get the database URL, composing it from the DB_* fields if needed"""
        if self.database_url:
            return self.database_url
        url = URL.create(
            self.db_driver,
            username=self.db_user,
            password=self.db_password or None,
            host=self.db_host,
            port=self.db_port,
            database=self.db_name,
        )
        return url.render_as_string(hide_password=False)

    @property
    def is_production(self) -> bool:
        """Check if running in production"""
        return self.environment.lower() == "production"


@lru_cache()
def get_settings() -> Settings:
    """Cache settings to avoid reading .env multiple times"""
    return Settings()

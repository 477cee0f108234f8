import os

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Configuration class for environment variables and migrator settings.
    """

    # Service settings
    service_name: str = os.getenv("SERVICE_NAME", "migrator")
    environment: str = os.getenv("ENVIRONMENT", "development")
    debug: bool = os.getenv("DEBUG", "False").lower() == "true"

    # Logging settings
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    json_logs: bool = os.getenv("JSON_LOGS", "False").lower() == "true"

    # Database settings
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///migrations.db")
    database_echo: bool = os.getenv("DATABASE_ECHO", "False").lower() == "true"

    # Migration settings
    migrations_dir: str = os.getenv("MIGRATIONS_DIR", "migrations")
    migrations_table: str = os.getenv("MIGRATIONS_TABLE", "migrations")
    migrations_templates_dir: str | None = os.getenv("MIGRATIONS_TEMPLATES_DIR", None)
    migrations_lock_timeout: int = int(os.getenv("MIGRATIONS_LOCK_TIMEOUT", "300"))

    @property
    def logging_config(self) -> dict:
        """
        Returns logging configuration based on environment.
        """
        base_config = {
            "app_name": self.service_name,
            "log_level": self.log_level,
            "json_logs": self.json_logs,
        }

        if self.environment == "development":
            base_config.update({"json_logs": False, "log_level": "DEBUG" if self.debug else self.log_level})

        return base_config

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the global settings, loading them on first use."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Drop cached settings so the next call re-reads the environment."""
    global _settings
    _settings = None

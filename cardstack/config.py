"""
Configuration management for the flashcard app.
Handles the database location, scheduler parameters and undo depth.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict

from cardstack.schemas import ConfigResponse, ConfigUpdate
from cardstack.spaced_repetition import FSRSParameters


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str = "sqlite:///./cardstack.db"

    # Logging
    log_level: str = "INFO"

    # Study session
    undo_depth: int = 10

    # Spaced Repetition defaults
    request_retention: float = 0.9
    maximum_interval_days: int = 36500

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False
    )


class ConfigManager:
    """Manager for application configuration."""

    def __init__(self, config_dao=None, settings: Settings | None = None):
        """
        Initialize configuration manager.

        Args:
            config_dao: Optional ConfigDAO for persistent storage
            settings: Optional settings (loaded from the environment by default)
        """
        self.settings = settings or Settings()
        self.config_dao = config_dao

    def _get(self, key: str, default):
        """Get a value from the database if available, otherwise from settings."""
        if self.config_dao:
            value = self.config_dao.get(key)
            if value is not None:
                return type(default)(value)
        return default

    def get_undo_depth(self) -> int:
        """Get the number of reviews that can be undone."""
        return self._get("undo_depth", self.settings.undo_depth)

    def get_scheduler_parameters(self) -> FSRSParameters:
        """
        Get spaced repetition parameters.

        Returns:
            FSRSParameters with current settings
        """
        return FSRSParameters(
            request_retention=self._get("request_retention", self.settings.request_retention),
            maximum_interval_days=self._get(
                "maximum_interval_days", self.settings.maximum_interval_days
            ),
        )

    def get_config_response(self) -> ConfigResponse:
        """Get configuration response."""
        parameters = self.get_scheduler_parameters()
        return ConfigResponse(
            undo_depth=self.get_undo_depth(),
            request_retention=parameters.request_retention,
            maximum_interval_days=parameters.maximum_interval_days,
        )

    def update_config(self, config_update: ConfigUpdate) -> ConfigResponse:
        """
        Update configuration values.

        Args:
            config_update: Configuration updates

        Returns:
            Updated ConfigResponse
        """
        if not self.config_dao:
            raise ValueError("ConfigDAO not available for updates")

        if config_update.undo_depth is not None:
            self.config_dao.set("undo_depth", str(config_update.undo_depth))

        if config_update.request_retention is not None:
            self.config_dao.set("request_retention", str(config_update.request_retention))

        if config_update.maximum_interval_days is not None:
            self.config_dao.set("maximum_interval_days", str(config_update.maximum_interval_days))

        return self.get_config_response()

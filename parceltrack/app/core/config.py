"""
Configuration settings for ParcelTrack.

This module handles application configuration using Pydantic settings.
"""

from pathlib import Path
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings."""

    # Application
    app_name: str = "ParcelTrack"
    api_version: str = "v1"
    debug: bool = False
    log_level: str = "INFO"

    # Persistence Configuration (pipe-delimited record files)
    persistence_enabled: bool = True
    data_dir: str = "."
    couriers_file: str = "couriers.csv"
    deliveries_file: str = "deliveries.csv"

    # Audit trail
    audit_trail_size: int = 500

    @property
    def couriers_path(self) -> Path:
        return Path(self.data_dir) / self.couriers_file

    @property
    def deliveries_path(self) -> Path:
        return Path(self.data_dir) / self.deliveries_file

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()

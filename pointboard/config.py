"""Pointboard configuration via pydantic-settings."""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings


class PointboardSettings(BaseSettings):
    environment: str = "development"
    database_url: str = "sqlite+aiosqlite:///pointboard.db"
    echo_sql: bool = False
    app_title: str = "Pointboard"
    log_level: str = "INFO"

    auth_secret: str = ""
    auth_cookie_name: str = "pb_session"
    auth_cookie_secure: bool = False
    auth_session_ttl_seconds: int = 86400
    auth_rate_limit_window_seconds: int = 300
    auth_rate_limit_max_attempts: int = 10
    auth_rate_limit_block_seconds: int = 600

    # Registering with this code creates an admin account; empty disables it.
    admin_registration_code: str = ""
    bootstrap_admin_username: str = ""
    bootstrap_admin_password: str = ""

    upload_dir: str = "uploads"
    max_proof_file_bytes: int = 10 * 1024 * 1024
    leaderboard_limit: int = 10

    model_config = {"env_prefix": "PB_", "env_file": ".env", "extra": "ignore"}

    @property
    def base_dir(self) -> Path:
        return Path(__file__).resolve().parent

    @property
    def project_dir(self) -> Path:
        return self.base_dir.parent

    @property
    def upload_root(self) -> Path:
        path = Path(self.upload_dir)
        if not path.is_absolute():
            path = self.project_dir / path
        return path

    @property
    def proof_files_dir(self) -> Path:
        return self.upload_root / "proof-files"

    @property
    def is_production(self) -> bool:
        return self.environment.strip().lower() in {"prod", "production"}


settings = PointboardSettings()

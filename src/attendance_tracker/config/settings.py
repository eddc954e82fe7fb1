from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import date
from pathlib import Path

from dotenv import load_dotenv

from attendance_tracker.config.user_settings_store import DOCUMENTS_PATH, UserSettingsStore

BASE_DIR = Path(__file__).resolve().parents[3]
ENV_PATH = BASE_DIR / ".env"
load_dotenv(ENV_PATH)

APP_NAME = os.getenv("APP_NAME", "School Attendance Tracker")
user_settings_store = UserSettingsStore()

APP_DATA_DIR = Path(user_settings_store.get("app_data_dir", str(DOCUMENTS_PATH / APP_NAME))).expanduser()
APP_DATA_DIR.mkdir(parents=True, exist_ok=True)


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    app_name: str
    database_path: Path
    remote_api_url: str | None
    request_timeout: float
    connectivity_interval: float
    academic_year: int
    auto_sync: bool
    log_level: str

    def __str__(self) -> str:
        return (
            f"Settings(app_name={self.app_name}, "
            f"database_path={self.database_path}, "
            f"remote_api_url={'set' if self.remote_api_url else 'unset'}, "
            f"request_timeout={self.request_timeout}, "
            f"connectivity_interval={self.connectivity_interval}, "
            f"academic_year={self.academic_year}, "
            f"auto_sync={self.auto_sync}, "
            f"log_level={self.log_level})"
        )


def build_settings(store: UserSettingsStore, app_data_dir: Path) -> Settings:
    """Environment variables win over the user settings file."""
    return Settings(
        app_name=APP_NAME,
        database_path=Path(os.getenv("DATABASE_PATH", str(app_data_dir / "attendance.db"))),
        remote_api_url=os.getenv("REMOTE_API_URL") or store.get("remote_api_url"),
        request_timeout=float(os.getenv("REQUEST_TIMEOUT", "15")),
        connectivity_interval=float(os.getenv("CONNECTIVITY_INTERVAL", "30")),
        academic_year=int(os.getenv("ACADEMIC_YEAR") or store.get("academic_year") or date.today().year),
        auto_sync=_env_flag("AUTO_SYNC", bool(store.get("auto_sync", True))),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )


settings = build_settings(user_settings_store, APP_DATA_DIR)


def refresh_settings_from_store() -> None:
    """Rebuild the settings object from the current user store values."""

    global settings, APP_DATA_DIR  # noqa: PLW0603 - module-level singletons

    user_settings_store.reload()

    app_data_dir = Path(user_settings_store.get("app_data_dir", str(DOCUMENTS_PATH / APP_NAME))).expanduser()
    app_data_dir.mkdir(parents=True, exist_ok=True)

    APP_DATA_DIR = app_data_dir
    settings = build_settings(user_settings_store, APP_DATA_DIR)

"""Application configuration loaded from config.yaml + environment variables."""

from __future__ import annotations

import yaml
from pathlib import Path
from pydantic import Field
from pydantic_settings import BaseSettings

_CONFIG_PATH = Path(__file__).resolve().parent.parent / "config.yaml"


def _load_yaml() -> dict:
    if _CONFIG_PATH.exists():
        with open(_CONFIG_PATH) as f:
            return yaml.safe_load(f) or {}
    return {}


_yaml = _load_yaml()


class StoreConfig(BaseSettings):
    timeout_seconds: float = 5.0


class WorkOrderConfig(BaseSettings):
    max_visit_age_days: int = 365  # 0 disables the check
    default_page_size: int = 10
    max_page_size: int = 200


class ImporterConfig(BaseSettings):
    batch_size: int = 10
    row_timeout_seconds: float = 10.0
    min_populated_fields: int = 3
    max_upload_bytes: int = 10 * 1024 * 1024
    max_retained_jobs: int = 50


class Settings(BaseSettings):
    database_url: str = "sqlite+aiosqlite:///data/work_orders.db"
    log_level: str = "INFO"
    store: StoreConfig = Field(default_factory=StoreConfig)
    work_orders: WorkOrderConfig = Field(default_factory=WorkOrderConfig)
    importer: ImporterConfig = Field(default_factory=ImporterConfig)

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


def get_settings() -> Settings:
    """Build Settings by merging YAML defaults with env overrides."""
    y = _yaml
    store = StoreConfig(**y.get("store", {}))
    wo = WorkOrderConfig(**y.get("work_orders", {}))
    imp = ImporterConfig(**y.get("importer", {}))
    db_url = y.get("database", {}).get("url", "sqlite+aiosqlite:///data/work_orders.db")
    return Settings(
        database_url=db_url,
        log_level=y.get("log_level", "INFO"),
        store=store,
        work_orders=wo,
        importer=imp,
    )

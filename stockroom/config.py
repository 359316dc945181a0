from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import streamlit as st

CONFIG_FILE_NAME = "settings.json"
SESSION_DATA_DIR = "stockroom_data_dir"

ENV_DATA_DIR = "STOCKROOM_DATA_DIR"
ENV_STORE = "STOCKROOM_STORE"
ENV_LOG_LEVEL = "STOCKROOM_LOG_LEVEL"
ENV_SEED_DEMO_DATA = "STOCKROOM_SEED_DEMO_DATA"

DEFAULT_STORE_LOCATOR = "sqlite:inventory_v2.db"


@dataclass(frozen=True)
class Settings:
    data_dir: Path
    db_path: Path
    store_locator: str = DEFAULT_STORE_LOCATOR
    currency: str = "USD"
    log_level: str = "INFO"
    seed_demo_data: bool = False


def _default_data_dir() -> Path:
    return Path.home() / ".stockroom"


def _load_persisted_settings(data_dir: Path) -> dict:
    cfg = data_dir / CONFIG_FILE_NAME
    if cfg.exists():
        try:
            return json.loads(cfg.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return {}
    return {}


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in {"1", "true", "yes", "on"}


def log_level() -> str:
    return os.getenv(ENV_LOG_LEVEL, "INFO").strip().upper() or "INFO"


def resolve_store_path(locator: str, data_dir: Path) -> Path:
    """
    Turn a store locator such as ``sqlite:inventory_v2.db`` into a file path.

    Relative names are placed inside the data directory; absolute names are
    used as-is. Only the ``sqlite`` scheme is understood.
    """
    scheme, sep, name = str(locator).partition(":")
    name = name.strip()
    if not sep or scheme.strip().lower() != "sqlite" or not name:
        raise ValueError(f"Unsupported store locator: {locator!r}. Use 'sqlite:<filename>'.")

    path = Path(name).expanduser()
    if path.is_absolute():
        return path
    return Path(data_dir) / path


def persist_data_dir(data_dir_str: str) -> None:
    data_dir = Path(data_dir_str).expanduser().resolve()
    data_dir.mkdir(parents=True, exist_ok=True)

    cfg = _default_data_dir() / CONFIG_FILE_NAME
    cfg.parent.mkdir(parents=True, exist_ok=True)
    payload = {"data_dir": str(data_dir)}
    cfg.write_text(json.dumps(payload, indent=2), encoding="utf-8")

    # Update session for immediate effect
    st.session_state[SESSION_DATA_DIR] = str(data_dir)


def load_settings(session_data_dir: Optional[str] = None) -> Settings:
    # Priority order:
    # 1) Session state (set via Data Management page)
    # 2) Environment variable
    # 3) Persisted settings in default folder
    # 4) Default folder
    if session_data_dir:
        data_dir = Path(session_data_dir).expanduser().resolve()
    elif os.getenv(ENV_DATA_DIR):
        data_dir = Path(os.getenv(ENV_DATA_DIR, "")).expanduser().resolve()
    else:
        default_dir = _default_data_dir()
        persisted = _load_persisted_settings(default_dir)
        data_dir = Path(persisted.get("data_dir", default_dir)).expanduser().resolve()

    data_dir.mkdir(parents=True, exist_ok=True)

    locator = os.getenv(ENV_STORE, "").strip() or DEFAULT_STORE_LOCATOR
    return Settings(
        data_dir=data_dir,
        db_path=resolve_store_path(locator, data_dir),
        store_locator=locator,
        log_level=log_level(),
        seed_demo_data=_env_flag(ENV_SEED_DEMO_DATA),
    )


@st.cache_resource
def get_settings() -> Settings:
    return load_settings(st.session_state.get(SESSION_DATA_DIR))

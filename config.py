"""
Settings for the task dashboard.

Backend detection follows the usual order: Streamlit secrets first, then
environment variables. Nothing here is read at import time; the app builds
one Settings object at startup and passes it down.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Mapping, Optional

ENV_PREFIX = "TASKBOARD"

WORKFLOWS = ("three_state", "two_state")
DEFAULT_WORKFLOW = "three_state"
DEFAULT_LOG_LEVEL = "INFO"

DEFAULT_DB_PATH = Path(__file__).resolve().parent / "taskboard.db"


def _k(suffix: str) -> str:
    return f"{ENV_PREFIX}_{suffix}"


def _env_bool(environ: Mapping[str, str], name: str, default: bool) -> bool:
    raw = environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_float(environ: Mapping[str, str], name: str, default: float) -> float:
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(environ: Mapping[str, str], name: str, default: Path) -> Path:
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True)
class Settings:
    # ---- Remote store ----
    turso_url: Optional[str]
    turso_auth_token: Optional[str]
    db_path: Path
    http_timeout: float

    # ---- Task lifecycle ----
    workflow: str
    gate_transitions_on_due: bool

    # ---- Logging ----
    log_level: str
    log_dir: Path

    @property
    def use_turso(self) -> bool:
        return bool(self.turso_url and self.turso_auth_token)

    @staticmethod
    def from_env(environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ

        workflow = (env.get(_k("WORKFLOW")) or DEFAULT_WORKFLOW).strip().lower()
        if workflow not in WORKFLOWS:
            workflow = DEFAULT_WORKFLOW

        log_level = (env.get(_k("LOG_LEVEL")) or DEFAULT_LOG_LEVEL).strip().upper()
        if not isinstance(logging.getLevelName(log_level), int):
            log_level = DEFAULT_LOG_LEVEL

        return Settings(
            turso_url=env.get("TURSO_DATABASE_URL") or None,
            turso_auth_token=env.get("TURSO_AUTH_TOKEN") or None,
            db_path=_env_path(env, _k("DB_PATH"), DEFAULT_DB_PATH),
            http_timeout=_env_float(env, _k("HTTP_TIMEOUT"), 30.0),
            workflow=workflow,
            gate_transitions_on_due=_env_bool(env, _k("GATE_TRANSITIONS"), False),
            log_level=log_level,
            log_dir=_env_path(env, _k("LOG_DIR"), Path(".local/taskboard")),
        )


def _turso_secrets() -> tuple[Optional[str], Optional[str]]:
    try:
        import streamlit as st
        if "turso" in st.secrets:
            return st.secrets["turso"]["url"], st.secrets["turso"]["auth_token"]
    except Exception:
        # No secrets.toml, or not running under Streamlit.
        pass
    return None, None


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Settings from the environment, with Turso credentials from secrets taking precedence."""
    settings = Settings.from_env(environ)
    url, token = _turso_secrets()
    if url and token:
        settings = replace(settings, turso_url=url, turso_auth_token=token)
    return settings

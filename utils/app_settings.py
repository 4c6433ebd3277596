"""Application settings switches used by the checklist modules.

Values come from the environment first and fall back to an optional INI file
``app.ini`` inside the data directory:

* ``CHECKLIST_DATA_DIR`` selects the data directory (default ``data``).
* ``DEV_MODE`` is True when ``CHECKLIST_DEV=1`` is set or the INI contains
  ``[app] dev = true``.
* ``[submissions] page_size`` overrides the default submissions page size.

Everything is read through functions so tests can re-point the data
directory with ``monkeypatch.setenv``.
"""

from __future__ import annotations

import configparser
import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 25
_TRUTHY = {"1", "true", "yes", "on"}


def data_dir() -> Path:
    return Path(os.environ.get("CHECKLIST_DATA_DIR", "data"))


def _read_ini() -> configparser.ConfigParser | None:
    ini_path = data_dir() / "app.ini"
    if not ini_path.exists():
        return None
    cp = configparser.ConfigParser()
    try:
        cp.read(ini_path)
    except configparser.Error as exc:
        logger.warning("[settings] ignoring unreadable %s: %s", ini_path, exc)
        return None
    return cp


def dev_mode() -> bool:
    if str(os.environ.get("CHECKLIST_DEV", "0")).strip().lower() in _TRUTHY:
        return True
    cp = _read_ini()
    if cp is None:
        return False
    raw = cp.get("app", "dev", fallback="0").strip().lower()
    return raw in _TRUTHY


def page_size() -> int:
    cp = _read_ini()
    if cp is None:
        return DEFAULT_PAGE_SIZE
    try:
        value = cp.getint("submissions", "page_size", fallback=DEFAULT_PAGE_SIZE)
    except ValueError:
        logger.warning("[settings] invalid submissions.page_size; using %s", DEFAULT_PAGE_SIZE)
        return DEFAULT_PAGE_SIZE
    return value if value > 0 else DEFAULT_PAGE_SIZE


def database_url() -> str:
    return f"sqlite:///{data_dir() / 'checklists.db'}"


__all__ = ["data_dir", "dev_mode", "page_size", "database_url", "DEFAULT_PAGE_SIZE"]

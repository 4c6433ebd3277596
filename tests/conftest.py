from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))


@pytest.fixture()
def data_dir(tmp_path, monkeypatch):
    """Point the settings and the engine cache at a scratch directory."""
    from modules._infra.repository import reset_engine_cache

    monkeypatch.setenv("CHECKLIST_DATA_DIR", str(tmp_path))
    monkeypatch.delenv("CHECKLIST_DEV", raising=False)
    reset_engine_cache()
    yield tmp_path
    reset_engine_cache()

"""Configuration management for the budget tracker.

This module centralizes paths, the storage backend selection and their
environment variable overrides.
"""

from __future__ import annotations

import os
from pathlib import Path

# Base project root - assumes this file is in budget_tracker/
_PROJECT_ROOT = Path(__file__).parent.parent.resolve()

# Data directories
DATA_DIR = Path(os.getenv("BUDGET_TRACKER_DATA_DIR", _PROJECT_ROOT / "data"))
STORE_DIR = Path(os.getenv("BUDGET_TRACKER_STORE_DIR", DATA_DIR / "store"))
REPORTS_DIR = DATA_DIR / "reports"

# Database
DB_PATH = Path(
    os.getenv("BUDGET_TRACKER_DB_PATH", DATA_DIR / "budget.db")
).resolve()

# One of: sqlite, json, memory
STORAGE_BACKEND = os.getenv("BUDGET_TRACKER_STORAGE", "sqlite").strip().lower()


def ensure_data_directories() -> None:
    """Create all required data directories if they don't exist."""
    for directory in [DATA_DIR, STORE_DIR, REPORTS_DIR]:
        directory.mkdir(parents=True, exist_ok=True)

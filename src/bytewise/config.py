"""Configuration for bytewise."""

from __future__ import annotations

import os
from pathlib import Path

# Paths
DATA_DIR = Path(os.getenv("BYTEWISE_DATA_DIR", ".bytewise"))
DB_PATH = DATA_DIR / "progress.db"

# Logging
LOG_LEVEL = os.getenv("BYTEWISE_LOG_LEVEL", "WARNING").upper()

# Persistence
PROGRESS_KEY = "moduleProgress"

# Challenge clock
TICK_INTERVAL_SECONDS = float(os.getenv("BYTEWISE_TICK_SECONDS", "1.0"))

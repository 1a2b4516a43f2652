"""Path utilities for the session store and dataset."""

from __future__ import annotations

import os
from pathlib import Path

HOME_ENV = "CHEMSEARCH_HOME"
DATASET_ENV = "CHEMSEARCH_DATASET"
DEFAULT_STORE_DIR = ".chemsearch"


def store_dir() -> Path:
    """Directory holding history, bookmarks and analytics."""
    override = os.environ.get(HOME_ENV)
    if override:
        return Path(override).expanduser()
    return Path.home() / DEFAULT_STORE_DIR


def dataset_path(explicit: Path | str | None = None) -> Path | None:
    """Dataset file from an explicit option or the environment; None means the bundled sample."""
    value = explicit or os.environ.get(DATASET_ENV)
    if not value:
        return None
    return Path(value).expanduser()

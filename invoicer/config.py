from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Optional


PACKAGE_DIR = Path(__file__).resolve().parent
BASE_DIR = PACKAGE_DIR.parent
OUT_DIR = BASE_DIR / "out"
STYLE_PRESET_PATH = PACKAGE_DIR / "assets" / "invoice_style.json"

# A4 in millimetres, origin at the top-left corner.
PAGE_WIDTH = 210.0
PAGE_HEIGHT = 297.0
MARGIN = 20.0
BOTTOM_LIMIT = PAGE_HEIGHT - 40.0

# Positional columns of the invoice CSV export.
PROJECT_COLUMN = 0
WORKER_COLUMN = 1
ACTIVITY_COLUMN = 2
HOURS_COLUMN = 4

ARCHIVE_LABEL_PREFIX = "Toptal"

ALLOWED_ACCOUNT: Optional[str] = os.environ.get("INVOICER_ALLOWED_ACCOUNT") or None


def load_style_preset() -> dict:
    with STYLE_PRESET_PATH.open("r", encoding="utf-8") as handle:
        return json.load(handle)


def set_out_dir(path: Path) -> None:
    global OUT_DIR
    OUT_DIR = path


def is_allowed_account(identity: Optional[str]) -> bool:
    if ALLOWED_ACCOUNT is None:
        return True
    return (identity or "").strip().lower() == ALLOWED_ACCOUNT.strip().lower()

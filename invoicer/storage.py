from __future__ import annotations

import hashlib
import re
from pathlib import Path

from slugify import slugify

from . import config


def project_slug(project: str) -> str:
    slug = slugify(project)
    slug = re.sub(r"[^a-z0-9-]+", "-", slug.lower()).strip("-")
    if not slug:
        slug = hashlib.md5(project.encode("utf-8")).hexdigest()[:12]
    return slug


def invoice_filename(project: str, month: str) -> str:
    return f"{project_slug(project)}-{month}.pdf"


def combined_filename(month: str) -> str:
    return f"combined-invoice-{month}.pdf"


def archive_label(period: str) -> str:
    return f"{config.ARCHIVE_LABEL_PREFIX} {period}".strip()


def archive_filename(period: str) -> str:
    return f"{archive_label(period)}.zip"


def output_dir(base_dir: Path | None = None) -> Path:
    root = base_dir or config.OUT_DIR
    root.mkdir(parents=True, exist_ok=True)
    return root


def output_path(filename: str, base_dir: Path | None = None) -> Path:
    if "/" in filename or "\\" in filename or filename.startswith(".."):
        raise ValueError(f"Invalid output filename: {filename}")
    return output_dir(base_dir) / filename

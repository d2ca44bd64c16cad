from __future__ import annotations

from pathlib import Path
from typing import Mapping
import zipfile


def create_archive(artifacts: Mapping[str, str], archive_path: Path) -> Path:
    """
    Bundle the converter CSVs into one zip.

    Entries keep the mapping's order and are stored by basename only.
    """
    if not artifacts:
        raise ValueError("No converter output to bundle")
    archive_path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(archive_path, "w", compression=zipfile.ZIP_DEFLATED) as bundle:
        for name, content in artifacts.items():
            bundle.writestr(Path(name).name, content)
    return archive_path

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import fitz  # PyMuPDF


def _render_page_to_png(doc: fitz.Document, page_index: int, out_path: Path, zoom: float = 2.0) -> None:
    page = doc.load_page(page_index)
    mat = fitz.Matrix(zoom, zoom)
    pix = page.get_pixmap(matrix=mat, alpha=False)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    pix.save(str(out_path))


def render_previews(pdf_path: Path, out_dir: Optional[Path] = None, max_pages: int = 3) -> List[Path]:
    """PNG snapshots of the first pages of a generated invoice, named <stem>_<n>.png."""
    target = out_dir or pdf_path.parent
    previews: List[Path] = []
    with fitz.open(str(pdf_path)) as doc:
        for index in range(min(max_pages, doc.page_count)):
            out_path = target / f"{pdf_path.stem}_{index + 1}.png"
            _render_page_to_png(doc, index, out_path)
            previews.append(out_path)
    return previews

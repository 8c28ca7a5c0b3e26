"""Compose the final document by concatenating the per-slide pages in slide order."""

from pathlib import Path

import fitz  # PyMuPDF

from .errors import AssemblyError


def _suppress_mupdf_noise() -> None:
    """Best-effort suppression of MuPDF stderr spam (version-tolerant)."""
    tools = getattr(fitz, "TOOLS", None)
    if tools is None:
        return

    for name in ("mupdf_display_errors", "mupdf_display_warnings"):
        fn = getattr(tools, name, None)
        if callable(fn):
            fn(False)


def compose_document(pages: list[bytes], output_path: str | Path | None = None, expected: int | None = None) -> bytes:
    """
    Merge one-page PDFs into a single document.

    Args:
        pages: PDF bytes per slide, already in slide order.
        output_path: Where to write the merged document, if anywhere.
        expected: Number of pages the caller expects (defaults to len(pages)).

    Returns:
        The merged PDF bytes.
    """
    expected = len(pages) if expected is None else expected
    if not pages or expected == 0:
        raise AssemblyError(expected, 0, "no pages to merge")

    _suppress_mupdf_noise()
    merged = fitz.open()
    try:
        for i, page in enumerate(pages):
            try:
                src = fitz.open(stream=page, filetype="pdf")
            except Exception as exc:
                raise AssemblyError(expected, merged.page_count, f"page {i} is not a readable PDF: {exc}") from exc
            with src:
                if src.page_count == 0:
                    raise AssemblyError(expected, merged.page_count, f"page {i} is empty")
                merged.insert_pdf(src)

        if merged.page_count != expected:
            raise AssemblyError(expected, merged.page_count)

        data = merged.tobytes(garbage=3, deflate=True)
    finally:
        merged.close()

    if output_path is not None:
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_bytes(data)
        print(f"[compose] Output saved to {output_path}")
    return data

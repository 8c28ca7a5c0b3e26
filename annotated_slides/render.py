"""Compose each resolved frame as SVG, then turn it into a one-page PDF.

The SVG → PDF step is delegated to rsvg-convert. Frames are independent of
each other, so they can be rendered in parallel; pages are always returned in
slide order.
"""

import gzip
import shutil
import subprocess
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Callable
from xml.sax.saxutils import quoteattr

from rich.progress import Progress, SpinnerColumn, TextColumn, BarColumn, MofNCompleteColumn

from .errors import RenderError, ResourceMissingError
from .models import ExportOptions, ResolvedFrame

# (svg_path, pdf_path, timeout) -> page bytes
Rasterizer = Callable[[Path, Path, float], bytes]

_print_lock = threading.Lock()


def _log(msg: str) -> None:
    with _print_lock:
        print(msg)


def _num(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else repr(float(value))


def build_frame_svg(frame: ResolvedFrame) -> str:
    """Background image first, then every shape in draw order (later paints over earlier)."""
    slide = frame.slide
    width, height = _num(slide.width), _num(slide.height)
    parts = [
        f'<svg width="{width}" height="{height}" viewBox="0 0 {width} {height}" '
        'xmlns:xlink="http://www.w3.org/1999/xlink" xmlns="http://www.w3.org/2000/svg">',
        f'<image xlink:href={quoteattr(slide.resource)} width="{width}" height="{height}"/>',
    ]
    parts.extend(shape.payload for shape in frame.shapes)
    parts.append("</svg>")
    return "".join(parts)


def write_frame(frame: ResolvedFrame, output_dir: Path, output_format: str = "svg") -> Path:
    path = Path(output_dir) / f"frame{frame.index}.{output_format}"
    data = build_frame_svg(frame).encode("utf-8")
    if output_format == "svgz":
        with gzip.open(path, "wb", compresslevel=1) as f:
            f.write(data)
    else:
        path.write_bytes(data)
    return path


def _find_bin(name: str) -> str:
    """Find a binary on PATH or common Homebrew locations."""
    found = shutil.which(name)
    if found:
        return found
    for candidate in [f"/opt/homebrew/bin/{name}", f"/usr/local/bin/{name}"]:
        if Path(candidate).exists():
            return candidate
    return name  # fall back to bare name; subprocess will raise FileNotFoundError


def rsvg_convert(svg_path: Path, pdf_path: Path, timeout: float = 120.0) -> bytes:
    """Rasterize one SVG frame to a PDF page with rsvg-convert and return the page bytes."""
    try:
        result = subprocess.run(
            [_find_bin("rsvg-convert"), "-f", "pdf", "-o", str(pdf_path), str(svg_path)],
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except FileNotFoundError as exc:
        raise RuntimeError("rsvg-convert not found — install librsvg") from exc
    except subprocess.TimeoutExpired as exc:
        raise RuntimeError(f"rsvg-convert timed out after {timeout:.0f}s") from exc

    if result.returncode != 0:
        raise RuntimeError(f"rsvg-convert error: {result.stderr.strip()[-2000:]}")
    if not pdf_path.exists():
        raise RuntimeError("rsvg-convert exited 0 but produced no output file")
    return pdf_path.read_bytes()


def render_frame(
    frame: ResolvedFrame,
    output_dir: Path,
    options: ExportOptions | None = None,
    rasterize: Rasterizer = rsvg_convert,
) -> bytes:
    options = options or ExportOptions()
    if not Path(frame.slide.resource).exists():
        raise ResourceMissingError(
            frame.slide.resource,
            f"slide {frame.index}: background not found: {frame.slide.resource}",
        )

    svg_path = write_frame(frame, output_dir, options.frame_extension)
    pdf_path = Path(output_dir) / f"frame{frame.index}.pdf"
    try:
        page = rasterize(svg_path, pdf_path, options.rasterizer_timeout)
    except (RuntimeError, OSError) as exc:
        raise RenderError(frame.index, str(exc)) from exc
    if not page:
        raise RenderError(frame.index, "rasterizer returned an empty page")
    return page


def render_frames(
    frames: list[ResolvedFrame],
    output_dir: str | Path,
    options: ExportOptions | None = None,
    rasterize: Rasterizer = rsvg_convert,
) -> list[bytes]:
    """
    Render every frame to a PDF page.

    With options.jobs > 1 the frames are rendered on a thread pool. The
    returned pages are indexed like `frames` regardless of completion order;
    the first failure aborts the run.
    """
    options = options or ExportOptions()
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    total = len(frames)
    pages: list[bytes | None] = [None] * total

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
    ) as progress:
        task = progress.add_task("[cyan]Rendering slides...", total=total)

        def render_one(position: int) -> None:
            frame = frames[position]
            progress.update(
                task,
                description=f"[cyan]Slide {frame.index + 1}/{total} ({len(frame.shapes)} shapes)",
            )
            pages[position] = render_frame(frame, output_dir, options, rasterize)
            progress.advance(task)

        if options.jobs == 1:
            for position in range(total):
                render_one(position)
        else:
            with ThreadPoolExecutor(max_workers=options.jobs) as pool:
                futures = [pool.submit(render_one, p) for p in range(total)]
                try:
                    for f in as_completed(futures):
                        f.result()  # re-raise the first failure
                except BaseException:
                    for pending in futures:
                        pending.cancel()
                    raise

    _log(f"[render] Rendered {total} frame(s) → {output_dir}")
    return [page for page in pages if page is not None]

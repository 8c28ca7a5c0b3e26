"""CLI entrypoint: export a recorded whiteboard session as an annotated PDF."""

import argparse
import sys
import time
from pathlib import Path

from rich.console import Console
from rich.panel import Panel

from .annotations import normalize_shapes
from .compose import compose_document
from .errors import ExportError
from .fetch import fetch_session
from .models import BOUNDARY_EPSILON, ExportOptions
from .render import Rasterizer, render_frames, rsvg_convert
from .resolve import resolve_frames, unique_slides
from .timeline import parse_timeline

_console = Console()

OUTPUT_NAME = "annotated_slides.pdf"
FRAMES_DIR = "presentation"


def export_pdf(
    published_dir: str | Path,
    output_path: str | Path | None = None,
    options: ExportOptions | None = None,
    rasterize: Rasterizer | None = None,
) -> Path:
    """
    Build the annotated slide deck for one recording.

    Reads `published_dir/shapes.svg`, writes intermediate frames to
    `published_dir/presentation/` and the merged document to `output_path`
    (default `published_dir/annotated_slides.pdf`). Any failure raises an
    ExportError subclass; nothing is written to `output_path` in that case.
    """
    options = options or ExportOptions()
    rasterize = rasterize or rsvg_convert
    published_dir = Path(published_dir).resolve()
    output_path = Path(output_path) if output_path else published_dir / OUTPUT_NAME
    frames_dir = published_dir / FRAMES_DIR

    # ── Stage 1: Parse timeline ─────────────────────────────────────────────
    with _console.status("[cyan][1/4] Parsing whiteboard timeline...[/]"):
        shapes, slides = parse_timeline(published_dir / "shapes.svg", published_dir)
        shapes = normalize_shapes(shapes, published_dir)
    _console.print(f"[green]✓[/] [bold][1/4][/] Timeline parsed ({len(slides)} slides, {len(shapes)} shapes)")

    # ── Stage 2: Resolve visible shapes per slide ───────────────────────────
    with _console.status("[cyan][2/4] Resolving annotations per slide...[/]"):
        slides = unique_slides(slides)
        frames = resolve_frames(slides, shapes, options)
    _console.print(f"[green]✓[/] [bold][2/4][/] Resolved {len(frames)} unique slides")

    for frame in frames:
        s = frame.slide
        _console.print(f"  [dim][{s.begin:.1f}s - {s.end:.1f}s] {Path(s.resource).name} shown {s.duration:.1f}s: {len(frame.shapes)} shapes[/]")

    # ── Stage 3: Render frames ──────────────────────────────────────────────
    _console.print("[cyan][3/4] Rendering frames...[/]")
    pages = render_frames(frames, frames_dir, options, rasterize)
    _console.print(f"[green]✓[/] [bold][3/4][/] Rendering complete ({len(pages)}/{len(frames)} pages)")

    # ── Stage 4: Compose document ───────────────────────────────────────────
    with _console.status("[cyan][4/4] Merging pages...[/]"):
        compose_document(pages, output_path, expected=len(frames))
    _console.print("[green]✓[/] [bold][4/4][/] Document composition complete")

    return output_path


def run(args: argparse.Namespace) -> int:
    published_dir = Path(args.published_dir)

    try:
        options = ExportOptions(
            remove_redundant_shapes=args.remove_redundant_shapes,
            output_format="svgz" if args.svgz else "svg",
            boundary_epsilon=args.epsilon,
            jobs=args.jobs,
            rasterizer_timeout=args.timeout,
        )
    except ValueError as exc:
        _console.print(f"[red]Error:[/] {exc}")
        return 2

    output_path = args.output or str(published_dir / OUTPUT_NAME)

    _console.print(Panel.fit(
        f"[bold]Recording:[/] {published_dir}\n"
        f"[bold]Source:[/]    {args.source or '-'}\n"
        f"[bold]Output:[/]    {output_path}\n"
        f"[bold]Frames:[/]    {options.output_format}, {options.jobs} job(s)",
        title="[bold cyan]annotated-slides export[/]",
    ))
    _console.print()

    start = time.monotonic()
    _console.print("Started exporting PDF")
    try:
        if args.source:
            with _console.status("[cyan]Fetching recording assets...[/]"):
                fetch_session(args.source, published_dir)
            _console.print("[green]✓[/] Assets fetched")
        elif not published_dir.is_dir():
            _console.print(f"[red]Error:[/] recording directory not found: {published_dir}")
            return 3

        result = export_pdf(published_dir, output_path, options)
    except ExportError as exc:
        _console.print(f"[red]Error:[/] {exc}")
        return exc.exit_code

    _console.print(f"\n[bold green]✓ Done![/] Output: {result}")
    _console.print(f"Finished exporting PDF. Total: {time.monotonic() - start:.2f}s")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="annotated-slides: rebuild a recorded whiteboard session as an annotated PDF"
    )
    parser.add_argument("published_dir", help="Recording directory containing shapes.svg and slide images")
    parser.add_argument("-o", "--output", help=f"Output PDF path (default: <published_dir>/{OUTPUT_NAME})")
    parser.add_argument("--source", help="Copy shapes.svg, captions and slide images from this directory first")
    parser.add_argument("--svgz", action="store_true", help="Write gzip-compressed intermediate frames")
    parser.add_argument(
        "--remove-redundant-shapes",
        action="store_true",
        help="Draw only the last state of consecutive revisions of the same shape",
    )
    parser.add_argument(
        "--epsilon",
        type=float,
        default=BOUNDARY_EPSILON,
        help=f"Seconds before a slide's end at which its annotations are sampled (default: {BOUNDARY_EPSILON})",
    )
    parser.add_argument("--jobs", type=int, default=1, help="Render this many slides in parallel (default: 1)")
    parser.add_argument("--timeout", type=float, default=120.0, help="rsvg-convert timeout per slide in seconds")
    return parser


def main() -> None:
    args = build_parser().parse_args()
    sys.exit(run(args))


if __name__ == "__main__":
    main()

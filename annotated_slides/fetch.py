"""Copy a published recording's whiteboard assets into the working directory."""

import json
import shutil
from pathlib import Path

from lxml import etree

from .errors import MalformedInputError, ResourceMissingError

SVG_NS = "http://www.w3.org/2000/svg"
XLINK_NS = "http://www.w3.org/1999/xlink"


def fetch_file(name: str, source_dir: Path, work_dir: Path) -> Path:
    """Copy `source_dir/name` to `work_dir/name`, creating parent directories."""
    src = (source_dir / name).resolve()
    dst = (work_dir / name).resolve()
    if not dst.is_relative_to(work_dir.resolve()):
        raise MalformedInputError(f"asset path escapes the working directory: {name}")
    if not src.is_file():
        raise ResourceMissingError(src)
    if src == dst:
        return dst  # already in place
    print(f"[fetch] Copying {name}")
    try:
        dst.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(src, dst)
    except OSError as exc:
        raise ResourceMissingError(src, f"could not copy {src} to {dst}: {exc}") from exc
    return dst


def _slide_images(shapes_svg: Path) -> list[str]:
    try:
        doc = etree.parse(str(shapes_svg))
    except etree.XMLSyntaxError as exc:
        raise MalformedInputError(f"{shapes_svg.name} is not well-formed XML: {exc}") from exc

    hrefs: list[str] = []
    for img in doc.iter(f"{{{SVG_NS}}}image", "image"):
        href = img.get(f"{{{XLINK_NS}}}href") or img.get("href")
        if href and href not in hrefs:
            hrefs.append(href)
    return hrefs


def fetch_session(source_dir: str | Path, work_dir: str | Path) -> Path:
    """
    Pull shapes.svg, caption tracks and every slide image of a recording.

    Caption tracks are listed in an optional captions.json; each entry's
    `locale` maps to a caption_<locale>.vtt file.

    Returns:
        Path to the copied shapes.svg.
    """
    source_dir = Path(source_dir)
    work_dir = Path(work_dir)
    work_dir.mkdir(parents=True, exist_ok=True)

    shapes_svg = fetch_file("shapes.svg", source_dir, work_dir)

    captions = source_dir / "captions.json"
    if captions.is_file():
        try:
            tracks = json.loads(captions.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise MalformedInputError(f"captions.json is not valid JSON: {exc}") from exc
        for i, track in enumerate(tracks):
            locale = track.get("locale") if isinstance(track, dict) else None
            if not locale:
                raise MalformedInputError("caption track without 'locale'", i, "caption")
            fetch_file(f"caption_{locale}.vtt", source_dir, work_dir)
    else:
        print("[fetch] No captions.json, skipping caption tracks")

    images = _slide_images(shapes_svg)
    for href in images:
        fetch_file(href, source_dir, work_dir)

    print(f"[fetch] Copied shapes.svg and {len(images)} slide image(s) to {work_dir}")
    return shapes_svg

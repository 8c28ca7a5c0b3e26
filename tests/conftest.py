from __future__ import annotations

from pathlib import Path

import fitz
import pytest

SHAPES_SVG = """<?xml version="1.0" encoding="UTF-8"?>
<svg xmlns="http://www.w3.org/2000/svg" xmlns:xlink="http://www.w3.org/1999/xlink" version="1.1" width="1600" height="900">
  <image id="image1" class="slide" in="0.0" out="10.0" xlink:href="presentation/deck/slide-1.png" width="1600" height="900" x="0" y="0" style="visibility:hidden"/>
  <g class="canvas" id="canvas1" image="image1" display="none">
    <g id="image1-draw1" class="shape" timestamp="2.0" undo="-1" shape="draw1-pencil-1" style="stroke:#ff0000;stroke-width:4;visibility:hidden;fill:none">
      <path d="M10 10L50 50"/>
    </g>
    <g id="image1-draw2" class="shape" timestamp="3.0" undo="9.0" shape="draw2-line-2" style="stroke:#00ff00;visibility:hidden">
      <line x1="0" y1="0" x2="10" y2="10"/>
    </g>
    <g id="image1-draw3" class="shape" timestamp="4.0" undo="-1" shape="draw3-text-3" style="color:#0000ff;font-size:20;visibility:hidden">
      <switch>
        <foreignObject x="100" y="200" width="100" height="60">
          <p xmlns="http://www.w3.org/1999/xhtml">abcdefghijklmnopqrst</p>
        </foreignObject>
      </switch>
    </g>
  </g>
  <image id="image2" class="slide" in="10.0" out="20.0" xlink:href="presentation/deck/slide-2.png" width="1600" height="900" x="0" y="0" style="visibility:hidden"/>
  <g class="canvas" id="canvas2" image="image2" display="none"/>
  <image id="image3" class="slide" in="20.0" out="25.0" xlink:href="presentation/deskshare/deskshare.png" width="1280" height="720" x="0" y="0" style="visibility:hidden"/>
  <g class="canvas" id="canvas3" image="image3" display="none">
    <g id="image3-draw1" class="shape" timestamp="21.0" undo="-1" shape="draw9-pencil-9" style="stroke:#000000"><path d="M0 0L1 1"/></g>
  </g>
  <image id="image4" class="slide" in="25.0" out="30.0" xlink:href="presentation/deck/slide-1.png" width="1600" height="900" x="0" y="0" style="visibility:hidden"/>
  <g class="canvas" id="canvas4" image="image4" display="none">
    <g id="image4-draw1" class="shape" timestamp="26.0" undo="-1" shape="draw4-pencil-4" style="stroke:#ff00ff;visibility:hidden"><path d="M5 5L6 6"/></g>
  </g>
</svg>
"""


def make_page(text: str, width: float = 200, height: float = 100) -> bytes:
    doc = fitz.open()
    page = doc.new_page(width=width, height=height)
    page.insert_text((10, 50), text)
    data = doc.tobytes()
    doc.close()
    return data


def page_texts(data: bytes) -> list[str]:
    with fitz.open(stream=data, filetype="pdf") as doc:
        return [page.get_text().strip() for page in doc]


class FakeRasterizer:
    """Stands in for rsvg-convert: writes a one-page PDF labelled with the frame name."""

    def __init__(self, fail_on: str | None = None):
        self.fail_on = fail_on
        self.calls: list[Path] = []

    def __call__(self, svg_path: Path, pdf_path: Path, timeout: float) -> bytes:
        self.calls.append(svg_path)
        if self.fail_on and svg_path.stem == self.fail_on:
            raise RuntimeError("rsvg-convert error: boom")
        data = make_page(svg_path.stem)
        pdf_path.write_bytes(data)
        return data


def write_session(root: Path, shapes_svg: str = SHAPES_SVG) -> Path:
    (root / "presentation" / "deck").mkdir(parents=True, exist_ok=True)
    (root / "presentation" / "deskshare").mkdir(parents=True, exist_ok=True)
    for name in ("deck/slide-1.png", "deck/slide-2.png", "deskshare/deskshare.png"):
        (root / "presentation" / name).write_bytes(b"\x89PNG\r\n\x1a\n")
    (root / "shapes.svg").write_text(shapes_svg, encoding="utf-8")
    return root


@pytest.fixture
def session_dir(tmp_path: Path) -> Path:
    return write_session(tmp_path / "recording")


@pytest.fixture
def rasterizer() -> FakeRasterizer:
    return FakeRasterizer()

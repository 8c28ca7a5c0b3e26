from __future__ import annotations

import gzip
import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest
from lxml import etree

from annotated_slides.errors import RenderError, ResourceMissingError
from annotated_slides.models import ExportOptions, ResolvedFrame, ShapeInterval, SlideInterval
from annotated_slides.render import build_frame_svg, render_frame, render_frames, rsvg_convert, write_frame

from conftest import FakeRasterizer

SVG = "{http://www.w3.org/2000/svg}"


def _frame(tmp_path: Path, index: int = 0, shapes: tuple = ()) -> ResolvedFrame:
    background = tmp_path / f"slide-{index}.png"
    background.write_bytes(b"png")
    slide = SlideInterval(resource=str(background), begin=0, end=10, width=1600.0, height=900.5)
    return ResolvedFrame(index=index, slide=slide, shapes=shapes)


def test_frame_svg_has_background_first_then_shapes_in_order(tmp_path: Path) -> None:
    shapes = (
        ShapeInterval(0, 10, "1", '<g style="a"><path d="M0 0"/></g>'),
        ShapeInterval(0, 10, "2", '<g style="b"><rect/></g>'),
    )
    frame = _frame(tmp_path, shapes=shapes)
    root = etree.fromstring(build_frame_svg(frame).encode())

    assert root.get("width") == "1600"
    assert root.get("height") == "900.5"
    assert root.get("viewBox") == "0 0 1600 900.5"
    children = list(root)
    assert children[0].tag == f"{SVG}image"
    assert children[0].get("{http://www.w3.org/1999/xlink}href") == frame.slide.resource
    assert [c.get("style") for c in children[1:]] == ["a", "b"]


def test_background_path_is_attribute_escaped(tmp_path: Path) -> None:
    slide = SlideInterval(resource='/rec/a "&" b.png', begin=0, end=1, width=10, height=10)
    root = etree.fromstring(build_frame_svg(ResolvedFrame(0, slide)).encode())
    assert root[0].get("{http://www.w3.org/1999/xlink}href") == '/rec/a "&" b.png'


def test_svgz_frames_are_gzipped(tmp_path: Path) -> None:
    frame = _frame(tmp_path, index=3)
    path = write_frame(frame, tmp_path, "svgz")
    assert path.name == "frame3.svgz"
    assert gzip.decompress(path.read_bytes()).decode() == build_frame_svg(frame)


def test_render_frame_returns_rasterizer_page(tmp_path: Path) -> None:
    rasterizer = FakeRasterizer()
    page = render_frame(_frame(tmp_path, index=2), tmp_path, ExportOptions(), rasterizer)
    assert page.startswith(b"%PDF")
    assert (tmp_path / "frame2.pdf").read_bytes() == page
    assert rasterizer.calls == [tmp_path / "frame2.svg"]


def test_rasterizer_failure_reports_slide_index(tmp_path: Path) -> None:
    with pytest.raises(RenderError) as excinfo:
        render_frame(_frame(tmp_path, index=5), tmp_path, ExportOptions(), FakeRasterizer(fail_on="frame5"))
    assert excinfo.value.slide_index == 5
    assert "slide 5" in str(excinfo.value)
    assert "boom" in str(excinfo.value)


def test_missing_background_is_resource_missing(tmp_path: Path) -> None:
    slide = SlideInterval(resource=str(tmp_path / "gone.png"), begin=0, end=1, width=10, height=10)
    with pytest.raises(ResourceMissingError):
        render_frame(ResolvedFrame(0, slide), tmp_path, ExportOptions(), FakeRasterizer())


@pytest.mark.parametrize("jobs", [1, 4])
def test_render_frames_returns_pages_in_slide_order(tmp_path: Path, jobs: int) -> None:
    frames = [_frame(tmp_path, index=i) for i in range(6)]
    out = tmp_path / "presentation"
    pages = render_frames(frames, out, ExportOptions(jobs=jobs), FakeRasterizer())
    assert pages == [(out / f"frame{i}.pdf").read_bytes() for i in range(6)]


@pytest.mark.parametrize("jobs", [1, 3])
def test_render_frames_aborts_on_first_failure(tmp_path: Path, jobs: int) -> None:
    frames = [_frame(tmp_path, index=i) for i in range(4)]
    with pytest.raises(RenderError) as excinfo:
        render_frames(frames, tmp_path / "out", ExportOptions(jobs=jobs), FakeRasterizer(fail_on="frame2"))
    assert excinfo.value.slide_index == 2


def test_rsvg_convert_invokes_binary(tmp_path: Path) -> None:
    svg_path = tmp_path / "frame0.svg"
    pdf_path = tmp_path / "frame0.pdf"

    def fake_run(cmd, **kwargs):
        assert cmd[1:] == ["-f", "pdf", "-o", str(pdf_path), str(svg_path)]
        assert kwargs["timeout"] == 30
        pdf_path.write_bytes(b"%PDF-1.5")
        return subprocess.CompletedProcess(cmd, 0, "", "")

    with patch("annotated_slides.render.subprocess.run", side_effect=fake_run):
        assert rsvg_convert(svg_path, pdf_path, 30) == b"%PDF-1.5"


def test_rsvg_convert_nonzero_exit_raises(tmp_path: Path) -> None:
    failed = subprocess.CompletedProcess([], 1, "", "Error reading SVG")
    with patch("annotated_slides.render.subprocess.run", return_value=failed):
        with pytest.raises(RuntimeError, match="Error reading SVG"):
            rsvg_convert(tmp_path / "a.svg", tmp_path / "a.pdf")


def test_rsvg_convert_missing_binary_raises(tmp_path: Path) -> None:
    with patch("annotated_slides.render.subprocess.run", side_effect=FileNotFoundError("rsvg-convert")):
        with pytest.raises(RuntimeError, match="not found"):
            rsvg_convert(tmp_path / "a.svg", tmp_path / "a.pdf")

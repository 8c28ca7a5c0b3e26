"""Turn recorded annotation markup into plain SVG that a rasterizer can draw.

Whiteboard text is recorded as XHTML inside a <foreignObject>, which most SVG
renderers ignore. Text shapes are reflowed here into <text>/<tspan> lines,
using a fixed character-width heuristic in place of real font metrics.
"""

import dataclasses
import math
import re
import unicodedata
from pathlib import Path
from xml.sax.saxutils import escape

import lxml.html
from lxml import etree

from .errors import MalformedInputError
from .models import ShapeInterval

XLINK_NS = "http://www.w3.org/1999/xlink"
XML_NS = "http://www.w3.org/XML/1998/namespace"

# Width-to-height ratio of an average Arial glyph.
GLYPH_ASPECT = 0.52
LINE_STEP = "0.9em"

_HIDDEN_RE = re.compile(r"visibility\s*:\s*hidden\s*;?")
_NUMBER_RE = re.compile(r"[-+]?(?:\d+\.?\d*|\.\d+)")
# Characters XML 1.0 cannot carry at all.
_XML_INVALID_RE = re.compile("[\x00-\x08\x0b\x0c\x0e-\x1f\ufffe\uffff]")


def _to_float(value: str | None) -> float:
    """Leading number of a CSS-ish value ("20px" -> 20.0); 0.0 when there is none."""
    if not value:
        return 0.0
    match = _NUMBER_RE.match(value.strip())
    return float(match.group(0)) if match else 0.0


def parse_style(style: str) -> dict[str, str]:
    values: dict[str, str] = {}
    for declaration in style.split(";"):
        key, sep, value = declaration.partition(":")
        if sep:
            values[key.strip()] = value.strip()
    return values


def chars_per_line(wrap_width: float, font_size: float) -> int:
    """How many glyphs fit across the text box; never less than one."""
    if not (font_size > 0 and wrap_width > 0) or math.isinf(font_size):
        return 1
    try:
        return max(1, math.floor(wrap_width / (font_size * GLYPH_ASPECT)))
    except (OverflowError, ValueError):
        return 1


def wrap_line(line: str, width: int) -> list[str]:
    width = max(1, width)
    return [line[i:i + width] for i in range(0, len(line), width)]


def sanitize_paragraph(fragment: str) -> str:
    """Strip any markup from a fragment and return its NFC-normalized text."""
    if not fragment.strip():
        return unicodedata.normalize("NFC", fragment)
    text = lxml.html.fragment_fromstring(fragment, create_parent="div").text_content()
    return unicodedata.normalize("NFC", text)


def xml_safe(text: str) -> str:
    """Drop characters XML cannot carry; the serializer escapes the rest."""
    return _XML_INVALID_RE.sub("", text)


def _paragraph_parts(foreign_object: etree._Element) -> list[str | None]:
    """Flatten the paragraphs of a foreignObject; None stands for a line break."""
    parts: list[str | None] = []
    for paragraph in foreign_object:
        if not isinstance(paragraph.tag, str):
            continue
        if paragraph.text:
            parts.append(escape(paragraph.text))
        for node in paragraph:
            if isinstance(node.tag, str):
                if etree.QName(node).localname == "br":
                    parts.append(None)
                else:
                    node_markup = etree.tostring(node, encoding="unicode", with_tail=False)
                    parts.append(node_markup)
            if node.tail:
                parts.append(escape(node.tail))
    return parts


def reflow_text(
    parts: list[str | None],
    x: str,
    y: str,
    fill: str | None,
    wrap_width: float,
    font_size: float,
) -> etree._Element:
    """
    Build a <text> block with one <tspan> per output line.

    Args:
        parts: Paragraph markup fragments; None marks an explicit line break.
        x, y: Position of the text box, copied through verbatim.
        fill: Text color.
        wrap_width: Width of the recorded text box.
        font_size: Font size in the same units as wrap_width.
    """
    attrs = {"x": x, "y": y}
    if fill:
        attrs["fill"] = fill
    text = etree.Element("text", attrs)
    text.set(f"{{{XML_NS}}}space", "preserve")

    width = chars_per_line(wrap_width, font_size)
    line_start = True
    for part in parts:
        if part is None:
            # Every row already advances by LINE_STEP; only a break with no
            # text since the previous one leaves a blank line.
            if line_start:
                etree.SubElement(text, "tspan", x=x, dy=LINE_STEP)
            line_start = True
            continue
        for row in wrap_line(sanitize_paragraph(part), width):
            tspan = etree.SubElement(text, "tspan", x=x, dy=LINE_STEP)
            tspan.text = xml_safe(row)
            line_start = False
    return text


def _convert_text(group: etree._Element, style: dict[str, str], index: int | None) -> None:
    switch = group.find("switch")
    foreign_object = switch.find("foreignObject") if switch is not None else None
    if foreign_object is None:
        raise MalformedInputError("text annotation without switch/foreignObject", index, "shape")

    text = reflow_text(
        _paragraph_parts(foreign_object),
        x=foreign_object.get("x", ""),
        y=foreign_object.get("y", ""),
        fill=style.get("color"),
        wrap_width=_to_float(foreign_object.get("width")),
        font_size=_to_float(style.get("font-size")),
    )
    group.append(text)
    group.remove(switch)
    group.set("style", f"{group.get('style', '').rstrip(';')};fill:currentcolor")


def _convert_poll(group: etree._Element, published_dir: Path) -> None:
    for image in group:
        if not isinstance(image.tag, str):
            continue
        href = image.attrib.pop("href", None) or image.attrib.pop(f"{{{XLINK_NS}}}href", None)
        if href is not None:
            image.set(f"{{{XLINK_NS}}}href", str(published_dir / href))
        break


def normalize_shape(
    shape: ShapeInterval,
    published_dir: str | Path,
    index: int | None = None,
) -> ShapeInterval:
    """Return a copy of `shape` whose payload is visible, drawable SVG."""
    try:
        group = etree.fromstring(shape.payload)
    except etree.XMLSyntaxError as exc:
        raise MalformedInputError(f"unparsable shape markup: {exc}", index, "shape") from exc

    style = _HIDDEN_RE.sub("", group.get("style", ""))
    group.set("style", style)

    if shape.is_poll:
        _convert_poll(group, Path(published_dir))
    if shape.is_text:
        _convert_text(group, parse_style(style), index)

    return dataclasses.replace(shape, payload=etree.tostring(group, encoding="unicode"))


def normalize_shapes(shapes: list[ShapeInterval], published_dir: str | Path) -> list[ShapeInterval]:
    normalized = [normalize_shape(s, published_dir, i) for i, s in enumerate(shapes)]
    texts = sum(1 for s in shapes if s.is_text)
    print(f"[annotations] Normalized {len(normalized)} shape(s), {texts} text block(s) reflowed")
    return normalized

"""Parse the recorded whiteboard timeline (shapes.svg) into slide and shape intervals."""

import copy
import math
from pathlib import Path

from lxml import etree

from .errors import MalformedInputError, ResourceMissingError
from .models import ShapeInterval, SlideInterval

XML_NS = "http://www.w3.org/XML/1998/namespace"


def _local(name: str) -> str:
    return etree.QName(name).localname if name.startswith("{") else name


def _attr(el: etree._Element, name: str) -> str | None:
    """Look up an attribute ignoring its namespace (`href` matches `xlink:href`)."""
    value = el.get(name)
    if value is not None:
        return value
    for key, val in el.attrib.items():
        if key.startswith("{") and _local(key) == name:
            return val
    return None


def _number(el: etree._Element, name: str, index: int, element: str) -> float:
    raw = _attr(el, name)
    if raw is None:
        raise MalformedInputError(f"missing '{name}' attribute", index, element)
    try:
        value = float(raw)
    except ValueError:
        raise MalformedInputError(f"'{name}' is not a number: {raw!r}", index, element) from None
    if not math.isfinite(value):
        raise MalformedInputError(f"'{name}' is not a finite number: {raw!r}", index, element)
    return value


def strip_namespaces(el: etree._Element) -> etree._Element:
    """Drop element and attribute namespaces in place (xml:* attributes are kept)."""
    for node in el.iter():
        if not isinstance(node.tag, str):
            continue  # comments, processing instructions
        node.tag = _local(node.tag)
        for key in list(node.attrib):
            if key.startswith("{") and not key.startswith("{" + XML_NS):
                node.attrib[_local(key)] = node.attrib.pop(key)
    etree.cleanup_namespaces(el)
    return el


def shape_payload(el: etree._Element) -> str:
    """Wrap a shape element's content in a bare `<g style=...>` group."""
    source = strip_namespaces(copy.deepcopy(el))
    group = etree.Element("g", style=_attr(el, "style") or "")
    group.text = source.text
    group.extend(list(source))
    return etree.tostring(group, encoding="unicode")


def parse_timeline(
    shapes_svg: str | Path,
    published_dir: str | Path,
) -> tuple[list[ShapeInterval], list[SlideInterval]]:
    """
    Stream the timeline document and collect shapes and slides in document order.

    Each shape is clamped to the slide that was current when it was recorded:
    it enters no earlier than the slide and leaves no later than the slide's
    end. An `undo` below zero means the shape was never undone, so it stays
    until the slide goes away.

    Returns:
        (shapes, slides), both in the order they appear in the document.
    """
    shapes_svg = Path(shapes_svg)
    published_dir = Path(published_dir)
    if not shapes_svg.exists():
        raise ResourceMissingError(shapes_svg)

    shapes: list[ShapeInterval] = []
    slides: list[SlideInterval] = []

    slide_in = 0.0
    slide_out = 0.0
    have_slide = False
    on_deskshare = False
    slide_no = 0
    shape_no = 0
    dropped = 0

    try:
        for _, node in etree.iterparse(str(shapes_svg), events=("end",), huge_tree=True):
            if not isinstance(node.tag, str):
                continue
            name = _local(node.tag)
            node_class = node.get("class")

            if name == "image" and node_class == "slide":
                slide_in = _number(node, "in", slide_no, "slide")
                slide_out = _number(node, "out", slide_no, "slide")
                href = _attr(node, "href")
                if not href:
                    raise MalformedInputError("missing 'href' attribute", slide_no, "slide")
                slide_no += 1
                have_slide = True

                path = str(published_dir / href)
                on_deskshare = "deskshare" in path
                if on_deskshare:
                    continue

                slides.append(SlideInterval(
                    resource=path,
                    begin=slide_in,
                    end=slide_out,
                    width=_number(node, "width", slide_no - 1, "slide"),
                    height=_number(node, "height", slide_no - 1, "slide"),
                ))
                continue

            if not (name == "g" and node_class == "shape"):
                continue

            index = shape_no
            shape_no += 1
            if not have_slide:
                raise MalformedInputError("shape recorded before any slide", index, "shape")

            timestamp = _number(node, "timestamp", index, "shape")
            undo = _number(node, "undo", index, "shape") if _attr(node, "undo") is not None else -1.0
            if undo < 0:
                undo = slide_out

            enter = max(timestamp, slide_in)
            leave = min(max(undo, slide_in), slide_out)

            composite = _attr(node, "shape")
            if not composite:
                raise MalformedInputError("missing 'shape' attribute", index, "shape")

            payload = shape_payload(node)
            node.clear(keep_tail=True)

            if on_deskshare:
                continue
            if enter > leave:
                # Drawn after its slide was already gone; never visible.
                dropped += 1
                continue

            shapes.append(ShapeInterval(
                begin=enter,
                end=leave,
                id=composite.split("-")[-1],
                payload=payload,
                shape=composite,
            ))
    except etree.XMLSyntaxError as exc:
        raise MalformedInputError(f"{shapes_svg.name} is not well-formed XML: {exc}") from exc

    print(f"[parse] {len(slides)} slide(s), {len(shapes)} shape(s) from {shapes_svg.name}")
    if dropped:
        print(f"[parse] Skipped {dropped} shape(s) recorded after their slide ended")
    return shapes, slides

"""Decide which shapes each slide page shows."""

from .interval_tree import IntervalTree
from .models import BOUNDARY_EPSILON, ExportOptions, ResolvedFrame, ShapeInterval, SlideInterval


def unique_slides(slides: list[SlideInterval]) -> list[SlideInterval]:
    """
    Keep one slide per background resource.

    A resource shown several times keeps the interval of its last showing,
    since that is when its annotations reached their final state, but stays
    at the position where it first appeared.
    """
    last: dict[str, SlideInterval] = {}
    for slide in slides:
        last[slide.resource] = slide
    return list(last.values())


def remove_adjacent(shapes: list[ShapeInterval]) -> list[ShapeInterval]:
    """Drop a shape when the next one is a later state of the same shape group."""
    return [
        shape for shape, following in zip(shapes, shapes[1:] + [None])
        if following is None or shape.id != following.id
    ]


def resolve_frame(
    slide: SlideInterval,
    tree: IntervalTree[ShapeInterval],
    remove_redundant: bool = False,
    epsilon: float = BOUNDARY_EPSILON,
    index: int = 0,
) -> ResolvedFrame:
    """Shapes visible just before `slide` goes away, in draw order."""
    shapes = tree.query(slide.end - epsilon)
    if remove_redundant and shapes:
        shapes = remove_adjacent(shapes)
    return ResolvedFrame(index=index, slide=slide, shapes=tuple(shapes))


def resolve_frames(
    slides: list[SlideInterval],
    shapes: list[ShapeInterval],
    options: ExportOptions | None = None,
) -> list[ResolvedFrame]:
    options = options or ExportOptions()
    tree = IntervalTree(shapes)
    frames = [
        resolve_frame(
            slide,
            tree,
            remove_redundant=options.remove_redundant_shapes,
            epsilon=options.boundary_epsilon,
            index=i,
        )
        for i, slide in enumerate(slides)
    ]
    drawn = sum(len(f.shapes) for f in frames)
    print(f"[resolve] {len(frames)} page(s), {drawn} shape(s) to draw")
    return frames

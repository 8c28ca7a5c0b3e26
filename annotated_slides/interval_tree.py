"""Centered interval tree answering "which intervals contain time T".

Works on any object exposing numeric `begin` and `end` attributes. The tree
is built once and never changes afterwards, so there is no rebalancing: each
node takes the median endpoint of its intervals as its center, keeps the
intervals that span it, and pushes the rest into a left or right subtree.

Stabbing queries are closed on both ends (`begin <= t <= end`) and return
intervals in the order they were handed to the constructor.
"""

from typing import Generic, Iterable, Protocol, TypeVar


class Interval(Protocol):
    begin: float
    end: float


T = TypeVar("T", bound=Interval)


class _Node:
    __slots__ = ("center", "by_begin", "by_end", "left", "right")

    def __init__(self, center: float, by_begin: list, by_end: list, left, right):
        self.center = center
        self.by_begin = by_begin  # (order, item) ascending by begin
        self.by_end = by_end      # (order, item) descending by end
        self.left = left
        self.right = right


def _build(entries: list[tuple[int, Interval]]) -> _Node | None:
    if not entries:
        return None

    points = sorted(p for _, item in entries for p in (item.begin, item.end))
    # The median is an endpoint, so at least one interval spans it and every
    # recursion works on a strictly smaller set.
    center = points[len(points) // 2]

    left: list[tuple[int, Interval]] = []
    right: list[tuple[int, Interval]] = []
    spanning: list[tuple[int, Interval]] = []
    for entry in entries:
        item = entry[1]
        if item.end < center:
            left.append(entry)
        elif item.begin > center:
            right.append(entry)
        else:
            spanning.append(entry)

    return _Node(
        center,
        sorted(spanning, key=lambda e: (e[1].begin, e[0])),
        sorted(spanning, key=lambda e: (-e[1].end, e[0])),
        _build(left),
        _build(right),
    )


class IntervalTree(Generic[T]):
    def __init__(self, intervals: Iterable[T] = ()):
        entries = list(enumerate(intervals))
        for order, item in entries:
            if item.begin > item.end:
                raise ValueError(f"interval {order} ends before it begins: [{item.begin}, {item.end}]")
        self._size = len(entries)
        self._root = _build(entries)

    @classmethod
    def build(cls, intervals: Iterable[T]) -> "IntervalTree[T]":
        return cls(intervals)

    def __len__(self) -> int:
        return self._size

    def __bool__(self) -> bool:
        return self._size > 0

    def query(self, point: float) -> list[T]:
        """Return every interval with begin <= point <= end, in insertion order."""
        hits: list[tuple[int, T]] = []
        node = self._root
        while node is not None:
            if point < node.center:
                for entry in node.by_begin:
                    if entry[1].begin > point:
                        break
                    hits.append(entry)
                node = node.left
            elif point > node.center:
                for entry in node.by_end:
                    if entry[1].end < point:
                        break
                    hits.append(entry)
                node = node.right
            else:
                hits.extend(node.by_begin)
                break

        hits.sort(key=lambda e: e[0])
        return [item for _, item in hits]

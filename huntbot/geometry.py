"""2-D points and the jitter / curved-path helpers used for movement."""

import math
import random
from dataclasses import dataclass

CURVE_SPREAD = 20.0   # max offset of the bezier control point from the midpoint


@dataclass(frozen=True)
class Point:
    x: float
    y: float


def distance(a: Point, b: Point) -> float:
    return math.hypot(b.x - a.x, b.y - a.y)


def add_jitter(p: Point, max_offset: float) -> Point:
    """Shift each axis independently by up to ±max_offset."""
    return Point(
        p.x + random.uniform(-1.0, 1.0) * max_offset,
        p.y + random.uniform(-1.0, 1.0) * max_offset,
    )


def random_offset(radius: float) -> Point:
    """A random vector whose length is at most `radius`."""
    angle = random.random() * 2 * math.pi
    r     = random.random() * radius
    return Point(r * math.cos(angle), r * math.sin(angle))


def generate_path(start: Point, end: Point, step: float) -> list[Point]:
    """
    Break a long move into points roughly `step` apart along a slightly
    curved quadratic bezier. The last point is always `end`.
    """
    dist = distance(start, end)
    if dist < step:
        return [end]

    steps = math.ceil(dist / step)
    path  = []
    for i in range(1, steps + 1):
        t = i / steps
        # control point is re-rolled per sample, giving a little wobble
        cx = (start.x + end.x) / 2 + random.uniform(-1.0, 1.0) * CURVE_SPREAD
        cy = (start.y + end.y) / 2 + random.uniform(-1.0, 1.0) * CURVE_SPREAD
        x = (1 - t) ** 2 * start.x + 2 * (1 - t) * t * cx + t ** 2 * end.x
        y = (1 - t) ** 2 * start.y + 2 * (1 - t) * t * cy + t ** 2 * end.y
        path.append(Point(x, y))
    return path

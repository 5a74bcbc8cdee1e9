"""Approximate SVG geometry for hit-area overlays.

Boxes are computed from the element's own attributes (path data, line
endpoints, shape attributes). Bezier control points are included, so a box may
be slightly larger than the drawn curve. Transforms are not applied here; hit
areas copy the element's `transform` instead.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass

from bs4 import Tag

MIN_HIT_SIZE = 16.0
MARKER_LENGTH = 18.0

_PATH_TOKEN_RE = re.compile(r"[MmLlHhVvCcSsQqTtAaZz]|[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?")
_NUMBER_RE = re.compile(r"[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?")
_PARAM_COUNTS = {"M": 2, "L": 2, "H": 1, "V": 1, "C": 6, "S": 4, "Q": 4, "T": 2, "A": 7, "Z": 0}

Point = tuple[float, float]


@dataclass(frozen=True)
class Box:
    x: float
    y: float
    width: float
    height: float

    @classmethod
    def around(cls, points: list[Point]) -> "Box | None":
        if not points:
            return None
        xs = [point[0] for point in points]
        ys = [point[1] for point in points]
        return cls(min(xs), min(ys), max(xs) - min(xs), max(ys) - min(ys))

    def padded_to(self, min_size: float = MIN_HIT_SIZE) -> "Box":
        """Grow the box around its center to at least `min_size` on each side."""
        width = max(self.width, min_size)
        height = max(self.height, min_size)
        return Box(self.x - (width - self.width) / 2, self.y - (height - self.height) / 2, width, height)


def _number(value: str | None, default: float = 0.0) -> float:
    if value is None:
        return default
    match = _NUMBER_RE.search(str(value))
    return float(match.group(0)) if match else default


def path_points(d: str) -> list[Point]:
    """Return the path's on-curve and control points in drawing order."""
    tokens = _PATH_TOKEN_RE.findall(d or "")
    points: list[Point] = []
    current = (0.0, 0.0)
    subpath_start = (0.0, 0.0)
    command = ""
    index = 0
    while index < len(tokens):
        token = tokens[index]
        if token.isalpha():
            command = token
            index += 1
            if command in "Zz":
                current = subpath_start
                points.append(current)
                continue
        if not command or command in "Zz":
            index += 1
            continue
        upper = command.upper()
        count = _PARAM_COUNTS[upper]
        params = tokens[index : index + count]
        if len(params) < count or any(param.isalpha() for param in params):
            break
        values = [float(param) for param in params]
        index += count
        relative = command.islower()
        ox, oy = current if relative else (0.0, 0.0)

        if upper in ("M", "L", "T"):
            current = (ox + values[0], oy + values[1])
            points.append(current)
            if upper == "M":
                subpath_start = current
                # Extra coordinate pairs after a moveto are linetos.
                command = "l" if relative else "L"
        elif upper == "H":
            current = (ox + values[0], current[1])
            points.append(current)
        elif upper == "V":
            current = (current[0], oy + values[0])
            points.append(current)
        elif upper == "C":
            points.append((ox + values[0], oy + values[1]))
            points.append((ox + values[2], oy + values[3]))
            current = (ox + values[4], oy + values[5])
            points.append(current)
        elif upper in ("S", "Q"):
            points.append((ox + values[0], oy + values[1]))
            current = (ox + values[2], oy + values[3])
            points.append(current)
        elif upper == "A":
            current = (ox + values[5], oy + values[6])
            points.append(current)
    return points


def _direction(tip: Point, towards: list[Point]) -> Point | None:
    for point in towards:
        dx = tip[0] - point[0]
        dy = tip[1] - point[1]
        length = math.hypot(dx, dy)
        if length > 1e-6:
            return dx / length, dy / length
    return None


def marker_tip(points: list[Point], *, at_start: bool, length: float = MARKER_LENGTH) -> Point | None:
    """Extend the path past its start or end by `length` along the end tangent."""
    if not points:
        return None
    if at_start:
        tip = points[0]
        direction = _direction(tip, points[1:])
    else:
        tip = points[-1]
        direction = _direction(tip, list(reversed(points[:-1])))
    if direction is None:
        return tip
    return tip[0] + direction[0] * length, tip[1] + direction[1] * length


def element_points(element: Tag) -> list[Point]:
    name = (element.name or "").lower()
    if name == "path":
        return path_points(element.get("d", ""))
    if name == "line":
        return [
            (_number(element.get("x1")), _number(element.get("y1"))),
            (_number(element.get("x2")), _number(element.get("y2"))),
        ]
    if name == "rect":
        x, y = _number(element.get("x")), _number(element.get("y"))
        return [(x, y), (x + _number(element.get("width")), y + _number(element.get("height")))]
    if name in ("circle", "ellipse"):
        cx, cy = _number(element.get("cx")), _number(element.get("cy"))
        rx = _number(element.get("r")) if name == "circle" else _number(element.get("rx"))
        ry = _number(element.get("r")) if name == "circle" else _number(element.get("ry"))
        return [(cx - rx, cy - ry), (cx + rx, cy + ry)]
    if name in ("polyline", "polygon"):
        numbers = [float(value) for value in _NUMBER_RE.findall(element.get("points", ""))]
        return list(zip(numbers[0::2], numbers[1::2]))
    return []


def element_box(element: Tag) -> Box | None:
    return Box.around(element_points(element))


def relation_box(element: Tag) -> Box | None:
    """Box spanning a relation path and its arrowhead marker."""
    points = element_points(element)
    if not points:
        return None
    start, end = points[0], points[-1]
    marker_start = (element.get("marker-start") or "").strip()
    marker_end = (element.get("marker-end") or "").strip()
    if marker_start and marker_start != "none":
        tip = marker_tip(points, at_start=True)
    elif marker_end and marker_end != "none":
        tip = marker_tip(points, at_start=False)
    else:
        tip = start
    corners = [start, end] + ([tip] if tip is not None else [])
    box = Box.around(corners)
    return box.padded_to() if box is not None else None

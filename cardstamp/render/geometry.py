from __future__ import annotations

from PIL import Image, ImageDraw

Point = tuple[float, float]

_CORNER_SEGMENTS = 12


def clamp_radius(width: float, height: float, radius: float) -> float:
    return max(0.0, min(float(radius or 0), min(width, height) / 2.0))


def _quadratic(start: Point, control: Point, end: Point, segments: int) -> list[Point]:
    points: list[Point] = []
    for step in range(1, segments + 1):
        t = step / float(segments)
        inv = 1.0 - t
        px = inv * inv * start[0] + 2 * inv * t * control[0] + t * t * end[0]
        py = inv * inv * start[1] + 2 * inv * t * control[1] + t * t * end[1]
        points.append((px, py))
    return points


def rounded_rect_path(
    x: float,
    y: float,
    width: float,
    height: float,
    radius: float,
    segments: int = _CORNER_SEGMENTS,
) -> list[Point]:
    """Closed outline of a rectangle whose corners are quadratic curves.

    The corner control point sits on the box corner, so each corner bulges
    slightly less than a true quarter circle.
    """
    r = clamp_radius(width, height, radius)
    right = x + width
    bottom = y + height
    if r <= 0:
        return [(x, y), (right, y), (right, bottom), (x, bottom)]

    path: list[Point] = [(x + r, y), (right - r, y)]
    path.extend(_quadratic((right - r, y), (right, y), (right, y + r), segments))
    path.append((right, bottom - r))
    path.extend(_quadratic((right, bottom - r), (right, bottom), (right - r, bottom), segments))
    path.append((x + r, bottom))
    path.extend(_quadratic((x + r, bottom), (x, bottom), (x, bottom - r), segments))
    path.append((x, y + r))
    path.extend(_quadratic((x, y + r), (x, y), (x + r, y), segments)[:-1])

    deduped: list[Point] = []
    for point in path:
        if not deduped or deduped[-1] != point:
            deduped.append(point)
    return deduped


def circle_geometry(x: float, y: float, width: float, height: float) -> tuple[float, float, float]:
    """Center and radius of the circle inscribed in the element's bounding box."""
    return x + width / 2.0, y + height / 2.0, max(0.0, min(width, height) / 2.0)


def ring_border_radius(width: float, height: float, border_width: float) -> float:
    # The disc extends border_width / 2 past the image circle, so only half of
    # the configured width stays visible once the image is painted over it.
    return max(0.0, min(width, height) / 2.0) + border_width / 2.0


def disc_bbox(cx: float, cy: float, radius: float) -> tuple[float, float, float, float]:
    # Pillow treats the far corner as inclusive; pull it in by one pixel so the
    # disc covers the same pixel centers as a circle of this radius.
    far = max(0.0, radius - 1.0)
    return (cx - radius, cy - radius, cx + far, cy + far)


def circle_clip_mask(
    size: tuple[int, int],
    x: float,
    y: float,
    width: float,
    height: float,
) -> Image.Image:
    mask = Image.new("L", size, 0)
    cx, cy, radius = circle_geometry(x, y, width, height)
    if radius > 0:
        ImageDraw.Draw(mask).ellipse(disc_bbox(cx, cy, radius), fill=255)
    return mask

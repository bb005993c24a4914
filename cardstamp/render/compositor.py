from __future__ import annotations

import logging
import re
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Mapping

from PIL import Image, ImageChops, ImageColor, ImageDraw

from cardstamp.assets import AssetAcquirer
from cardstamp.constants import CLIP_CIRCLE, DEFAULT_BLANK_FILL, DEFAULT_COLOR
from cardstamp.errors import AssetAcquisitionFailed, AssetError, BackgroundUnresolvable
from cardstamp.models import (
    Element,
    ImageElement,
    RectangleElement,
    RenderOptions,
    TemplateDefinition,
    TextElement,
)
from cardstamp.placeholders import resolve
from cardstamp.render.encoder import encode_png
from cardstamp.render.geometry import (
    circle_clip_mask,
    circle_geometry,
    disc_bbox,
    ring_border_radius,
    rounded_rect_path,
)
from cardstamp.render.typography import FontRegistry, draw_text_line, font_string

LOGGER = logging.getLogger("cardstamp")

RGBA = tuple[int, int, int, int]


_CSS_RGBA = re.compile(
    r"^rgba\(\s*(\d{1,3})\s*,\s*(\d{1,3})\s*,\s*(\d{1,3})\s*,\s*(\d*\.?\d+)(%?)\s*\)$",
    re.IGNORECASE,
)


def _css_alpha(value: str, percent: str) -> int:
    alpha = float(value) / 100.0 if percent else float(value)
    return int(round(max(0.0, min(1.0, alpha)) * 255))


def parse_color(value: Any, fallback: str = DEFAULT_COLOR) -> RGBA:
    text = str(value or "").strip()
    # CSS alpha is a 0..1 fraction; ImageColor expects 0..255.
    match = _CSS_RGBA.match(text)
    if match:
        r, g, b = (min(255, int(part)) for part in match.group(1, 2, 3))
        return (r, g, b, _css_alpha(match.group(4), match.group(5)))
    try:
        rgb = ImageColor.getrgb(text)
    except ValueError:
        rgb = ImageColor.getrgb(fallback)
    if len(rgb) == 3:
        return (int(rgb[0]), int(rgb[1]), int(rgb[2]), 255)
    return (int(rgb[0]), int(rgb[1]), int(rgb[2]), int(rgb[3]))


def _fill(surface: Image.Image, color: RGBA, paint: Callable[[ImageDraw.ImageDraw, RGBA], None]) -> None:
    if color[3] == 255:
        paint(ImageDraw.Draw(surface), color)
        return
    overlay = Image.new("RGBA", surface.size, (0, 0, 0, 0))
    paint(ImageDraw.Draw(overlay), color)
    surface.alpha_composite(overlay)


def _load_background(
    template: TemplateDefinition,
    data: Mapping[str, Any],
    acquirer: AssetAcquirer,
    options: RenderOptions,
    request_id: str,
) -> Image.Image:
    candidates: list[tuple[str, str]] = []
    if template.background:
        resolved = resolve(template.background, data)
        if resolved:
            candidates.append(("template", resolved))
    candidates.append(("fallback", options.fallback_background))

    errors: list[str] = []
    for label, source in candidates:
        try:
            image = acquirer.acquire(source)
        except AssetError as exc:
            LOGGER.warning("[%s] load-background: %s %s failed: %s", request_id, label, acquirer.describe(source), exc)
            errors.append(f"{label}: {exc}")
            continue
        LOGGER.debug("[%s] load-background: %s %s ok", request_id, label, acquirer.describe(source))
        return image
    raise BackgroundUnresolvable("; ".join(errors))


def build_surface(
    template: TemplateDefinition,
    data: Mapping[str, Any],
    acquirer: AssetAcquirer,
    options: RenderOptions,
    request_id: str = "-",
) -> Image.Image:
    try:
        background = _load_background(template, data, acquirer, options, request_id)
    except BackgroundUnresolvable as exc:
        LOGGER.warning("[%s] background unavailable, using blank %sx%s canvas (%s)", request_id, *options.default_size, exc)
        return Image.new("RGBA", options.default_size, parse_color(options.blank_fill, DEFAULT_BLANK_FILL))
    # The surface takes the background's natural size, so it is drawn 1:1.
    return background.convert("RGBA").copy()


def acquire_element_images(
    elements: tuple[Element, ...],
    data: Mapping[str, Any],
    acquirer: AssetAcquirer,
    workers: int = 4,
    request_id: str = "-",
) -> dict[int, Image.Image]:
    """Fetch every image element's source concurrently, keyed by element index.

    Failures are reported for the first failing element in array order.
    """
    jobs = [
        (index, element, resolve(element.source, data))
        for index, element in enumerate(elements)
        if isinstance(element, ImageElement)
    ]
    if not jobs:
        return {}

    images: dict[int, Image.Image] = {}
    with ThreadPoolExecutor(max_workers=max(1, min(workers, len(jobs))), thread_name_prefix="cardstamp-acquire") as pool:
        pending: list[tuple[int, ImageElement, str, Future]] = [
            (index, element, source, pool.submit(acquirer.acquire, source)) for index, element, source in jobs
        ]
        try:
            for index, element, source, future in pending:
                try:
                    images[index] = future.result()
                except AssetError as exc:
                    raise AssetAcquisitionFailed(element.name, index, source, exc) from exc
                LOGGER.debug("[%s] element:image load ok name=%s source=%s", request_id, element.name, source)
        except BaseException:
            for _index, _element, _source, future in pending:
                future.cancel()
            raise
    return images


def paint_image(
    surface: Image.Image,
    element: ImageElement,
    image: Image.Image,
    data: Mapping[str, Any],
) -> None:
    x, y, w, h = element.x, element.y, element.width, element.height
    circular = element.clip == CLIP_CIRCLE

    if circular and element.border is not None:
        border_color = parse_color(resolve(element.border.color, data) or DEFAULT_COLOR)
        cx, cy, _radius = circle_geometry(x, y, w, h)
        ring_radius = ring_border_radius(w, h, element.border.width)
        if ring_radius > 0:
            _fill(surface, border_color, lambda draw, fill: draw.ellipse(disc_bbox(cx, cy, ring_radius), fill=fill))

    if w <= 0 or h <= 0:
        return
    size = (max(1, int(round(w))), max(1, int(round(h))))
    scaled = image if image.size == size else image.resize(size, Image.Resampling.LANCZOS)
    layer = Image.new("RGBA", surface.size, (0, 0, 0, 0))
    layer.paste(scaled.convert("RGBA"), (int(round(x)), int(round(y))))
    if circular:
        clip = circle_clip_mask(surface.size, x, y, w, h)
        layer.putalpha(ImageChops.multiply(layer.getchannel("A"), clip))
    surface.alpha_composite(layer)


def paint_rectangle(surface: Image.Image, element: RectangleElement, data: Mapping[str, Any]) -> None:
    if element.width <= 0 or element.height <= 0:
        return
    color = parse_color(resolve(element.color, data))
    path = rounded_rect_path(element.x, element.y, element.width, element.height, element.radius)
    _fill(surface, color, lambda draw, fill: draw.polygon(path, fill=fill))


def paint_text(
    surface: Image.Image,
    element: TextElement,
    data: Mapping[str, Any],
    fonts: FontRegistry,
    default_family: str,
) -> str:
    color = parse_color(resolve(element.color, data))
    text = str(resolve(element.text, data))
    family = resolve(element.font, data) or default_family
    font = fonts.resolve_font(family, element.font_size)
    _fill(
        surface,
        color,
        lambda draw, fill: draw_text_line(draw, (element.x, element.y), text, font=font, fill=fill, align=element.align),
    )
    return font_string(element.font_size, family)


def compose(
    template: TemplateDefinition,
    data: Mapping[str, Any],
    *,
    acquirer: AssetAcquirer | None = None,
    fonts: FontRegistry | None = None,
    options: RenderOptions | None = None,
    request_id: str | None = None,
) -> Image.Image:
    options = options or RenderOptions()
    acquirer = acquirer or AssetAcquirer(options.app_root, timeout=options.fetch_timeout)
    fonts = fonts or FontRegistry()
    rid = request_id or uuid.uuid4().hex[:12]
    LOGGER.debug("[%s] start render template=%s elements=%d", rid, template.name, len(template.elements))

    surface = build_surface(template, data, acquirer, options, rid)
    LOGGER.debug("[%s] canvas-setup width=%d height=%d", rid, surface.width, surface.height)

    images = acquire_element_images(template.elements, data, acquirer, options.prefetch_workers, rid)

    for index, element in enumerate(template.elements):
        if isinstance(element, ImageElement):
            paint_image(surface, element, images[index], data)
            LOGGER.debug("[%s] element:image drawn name=%s clip=%s", rid, element.name, element.clip)
        elif isinstance(element, RectangleElement):
            paint_rectangle(surface, element, data)
            LOGGER.debug("[%s] element:rectangle drawn name=%s", rid, element.name)
        elif isinstance(element, TextElement):
            font_spec = paint_text(surface, element, data, fonts, options.brand_font_family)
            LOGGER.debug("[%s] element:text drawn name=%s font=%s", rid, element.name, font_spec)
        else:
            LOGGER.debug("[%s] element #%d skipped: unsupported type %r", rid, index, element.type)
    return surface


def render(
    template: TemplateDefinition,
    data: Mapping[str, Any],
    *,
    acquirer: AssetAcquirer | None = None,
    fonts: FontRegistry | None = None,
    options: RenderOptions | None = None,
    request_id: str | None = None,
) -> bytes:
    surface = compose(
        template,
        data,
        acquirer=acquirer,
        fonts=fonts,
        options=options,
        request_id=request_id,
    )
    return encode_png(surface)

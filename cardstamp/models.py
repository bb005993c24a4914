from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Union

from cardstamp.constants import (
    ALIGN_LEFT,
    BRAND_FONT_FAMILY,
    CLIP_NONE,
    DEFAULT_BLANK_FILL,
    DEFAULT_CANVAS_SIZE,
    DEFAULT_COLOR,
    DEFAULT_FONT_SIZE,
)


@dataclass(frozen=True, slots=True)
class Border:
    width: float
    color: str


@dataclass(frozen=True, slots=True)
class ImageElement:
    name: str = "image"
    x: float = 0
    y: float = 0
    width: float = 0
    height: float = 0
    source: str = ""
    clip: str = CLIP_NONE
    border: Border | None = None


@dataclass(frozen=True, slots=True)
class RectangleElement:
    name: str = "rectangle"
    x: float = 0
    y: float = 0
    width: float = 0
    height: float = 0
    radius: float = 0
    color: str = DEFAULT_COLOR


@dataclass(frozen=True, slots=True)
class TextElement:
    name: str = "text"
    x: float = 0
    y: float = 0
    font_size: float = DEFAULT_FONT_SIZE
    color: str = DEFAULT_COLOR
    text: str = ""
    align: str = ALIGN_LEFT
    font: str = BRAND_FONT_FAMILY


@dataclass(frozen=True, slots=True)
class UnknownElement:
    """An entry whose ``type`` is not one of image/rectangle/text; never painted."""

    type: str
    name: str = "unknown"


Element = Union[ImageElement, RectangleElement, TextElement, UnknownElement]


@dataclass(frozen=True, slots=True)
class TemplateDefinition:
    elements: tuple[Element, ...] = ()
    background: str | None = None
    name: str = "template"
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)


@dataclass(slots=True)
class RenderOptions:
    app_root: Path = field(default_factory=Path.cwd)
    fallback_background: str = "assets/background.png"
    default_size: tuple[int, int] = DEFAULT_CANVAS_SIZE
    blank_fill: str = DEFAULT_BLANK_FILL
    brand_font_family: str = BRAND_FONT_FAMILY
    prefetch_workers: int = 4
    fetch_timeout: float = 15.0

from __future__ import annotations

import copy
import json
import logging
import math
import os
import tempfile
import threading
from importlib import resources
from pathlib import Path
from typing import Any

import yaml

from cardstamp.constants import (
    ALIGN_LEFT,
    BRAND_FONT_FAMILY,
    CLIP_NONE,
    DEFAULT_COLOR,
    DEFAULT_FONT_SIZE,
    ELEMENT_TYPE_IMAGE,
    ELEMENT_TYPE_RECTANGLE,
    ELEMENT_TYPE_TEXT,
    TEMPLATE_EXTENSIONS,
    VALID_ALIGNS,
    VALID_CLIPS,
)
from cardstamp.errors import InvalidTemplateShape, TemplateUnavailable
from cardstamp.models import (
    Border,
    Element,
    ImageElement,
    RectangleElement,
    TemplateDefinition,
    TextElement,
    UnknownElement,
)

LOGGER = logging.getLogger("cardstamp")


def list_builtin_templates() -> list[str]:
    files = resources.files("cardstamp.templates")
    names = []
    for item in files.iterdir():
        if item.name.endswith(TEMPLATE_EXTENSIONS):
            names.append(Path(item.name).stem)
    return sorted(set(names))


def _parse_text(path_name: str, text: str) -> dict[str, Any]:
    if path_name.lower().endswith(".json"):
        data = json.loads(text)
    else:
        data = yaml.safe_load(text)
    if not isinstance(data, dict):
        raise ValueError(f"template file is not a dict: {path_name}")
    return data


def _load_file(path: Path) -> dict[str, Any]:
    return _parse_text(path.name, path.read_text(encoding="utf-8"))


def load_payload_file(path: Path) -> dict[str, Any]:
    """Public wrapper for _load_file."""
    return _load_file(path)


def _load_builtin(name: str) -> dict[str, Any]:
    pkg = resources.files("cardstamp.templates")
    for suffix in TEMPLATE_EXTENSIONS:
        candidate = pkg / f"{name}{suffix}"
        if candidate.is_file():
            return _parse_text(candidate.name, candidate.read_text(encoding="utf-8"))
    raise FileNotFoundError(f"built-in template not found: {name}")


def _number(value: Any, fallback: float) -> float:
    if value is None or isinstance(value, bool):
        return fallback
    try:
        number = float(value)
    except (TypeError, ValueError):
        return fallback
    return number if math.isfinite(number) else fallback


def _string(value: Any, fallback: str) -> str:
    # Mirrors `value ?? fallback`: empty strings are kept and resolved later.
    if value is None:
        return fallback
    return str(value)


def _normalize_border(value: Any) -> Border | None:
    if not isinstance(value, dict):
        return None
    width = _number(value.get("width"), 0)
    color = value.get("color")
    if width <= 0 or not color:
        return None
    return Border(width=width, color=str(color))


def normalize_element(data: Any, index: int) -> Element:
    if not isinstance(data, dict):
        return UnknownElement(type=type(data).__name__, name=f"element{index + 1}")
    kind = str(data.get("type") or "").strip()
    x = _number(data.get("x"), 0)
    y = _number(data.get("y"), 0)

    if kind == ELEMENT_TYPE_IMAGE:
        clip = str(data.get("clip") or CLIP_NONE).lower()
        return ImageElement(
            name=str(data.get("name") or "image"),
            x=x,
            y=y,
            width=_number(data.get("width"), 0),
            height=_number(data.get("height"), 0),
            source=_string(data.get("source"), ""),
            clip=clip if clip in VALID_CLIPS else CLIP_NONE,
            border=_normalize_border(data.get("border")),
        )
    if kind == ELEMENT_TYPE_RECTANGLE:
        return RectangleElement(
            name=str(data.get("name") or "rectangle"),
            x=x,
            y=y,
            width=_number(data.get("width"), 0),
            height=_number(data.get("height"), 0),
            radius=_number(data.get("radius"), 0),
            color=_string(data.get("color"), DEFAULT_COLOR),
        )
    if kind == ELEMENT_TYPE_TEXT:
        align = str(data.get("align") or ALIGN_LEFT).lower()
        return TextElement(
            name=str(data.get("name") or "text"),
            x=x,
            y=y,
            font_size=_number(data.get("fontSize"), DEFAULT_FONT_SIZE),
            color=_string(data.get("color"), DEFAULT_COLOR),
            text=_string(data.get("text"), ""),
            align=align if align in VALID_ALIGNS else ALIGN_LEFT,
            font=str(data.get("font") or BRAND_FONT_FAMILY),
        )
    return UnknownElement(type=kind, name=str(data.get("name") or kind or "unknown"))


def validate_template_payload(data: Any) -> dict[str, Any]:
    """Write-time check: only the presence of an ``elements`` list is enforced."""
    if not isinstance(data, dict) or not isinstance(data.get("elements"), list):
        raise InvalidTemplateShape("Invalid template format: 'elements' must be a list")
    return data


def normalize_template_dict(data: dict[str, Any], name: str = "template") -> TemplateDefinition:
    raw_elements = data.get("elements")
    if not isinstance(raw_elements, list):
        raw_elements = []
    background = data.get("background")
    background = str(background) if background else None
    return TemplateDefinition(
        elements=tuple(normalize_element(item, index) for index, item in enumerate(raw_elements)),
        background=background,
        name=str(data.get("name") or name),
        raw=copy.deepcopy(data),
    )


def load_template(template_name_or_path: str) -> TemplateDefinition:
    path = Path(template_name_or_path)
    if path.exists():
        raw = _load_file(path)
        name = path.stem
    else:
        raw = _load_builtin(template_name_or_path)
        name = template_name_or_path
    return normalize_template_dict(validate_template_payload(raw), name=name)


class TemplateStore:
    """File-backed template holder; readers always see one complete snapshot."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self._write_lock = threading.Lock()
        self._snapshot: TemplateDefinition | None = None
        self.reload()

    def reload(self) -> TemplateDefinition | None:
        try:
            raw = validate_template_payload(_load_file(self.path))
            snapshot = normalize_template_dict(raw, name=self.path.stem)
        except (OSError, ValueError, yaml.YAMLError) as exc:
            LOGGER.error("Failed to load template %s: %s", self.path, exc)
            return self._snapshot
        with self._write_lock:
            self._snapshot = snapshot
        return snapshot

    def get(self) -> TemplateDefinition:
        snapshot = self._snapshot
        if snapshot is None:
            raise TemplateUnavailable(f"Template not loaded: {self.path}")
        return snapshot

    def get_raw(self) -> dict[str, Any]:
        return copy.deepcopy(self.get().raw)

    def put(self, payload: Any) -> TemplateDefinition:
        raw = validate_template_payload(payload)
        try:
            text = json.dumps(raw, ensure_ascii=False, indent=2)
        except (TypeError, ValueError) as exc:
            raise InvalidTemplateShape(f"Invalid template format: {exc}") from exc
        snapshot = normalize_template_dict(raw, name=self.path.stem)
        with self._write_lock:
            self._write_atomic(text)
            self._snapshot = snapshot
        LOGGER.info("Template updated: %s (%d elements)", self.path, len(snapshot.elements))
        return snapshot

    def _write_atomic(self, text: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=self.path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(text)
            os.replace(temp_name, self.path)
        except BaseException:
            Path(temp_name).unlink(missing_ok=True)
            raise

from __future__ import annotations

import copy
import os
from pathlib import Path
from typing import Any

import yaml

from cardstamp.constants import BRAND_FONT_FAMILY, DEFAULT_BLANK_FILL, DEFAULT_CANVAS_SIZE
from cardstamp.models import RenderOptions


def default_prefetch_workers() -> int:
    cpu_count = os.cpu_count() or 2
    return max(1, min(8, cpu_count))


DEFAULT_CONFIG: dict[str, Any] = {
    "app_root": None,
    "template_path": "templates/template.json",
    "assets_dir": "assets",
    "fallback_background": "assets/background.png",
    "brand_font": {
        "path": "assets/DB-Adman-X.ttf",
        "family": BRAND_FONT_FAMILY,
    },
    "default_width": DEFAULT_CANVAS_SIZE[0],
    "default_height": DEFAULT_CANVAS_SIZE[1],
    "blank_fill": DEFAULT_BLANK_FILL,
    "public_dir": "public",
    "public_base_url": "",
    "fetch_timeout": 15,
    "prefetch_workers": default_prefetch_workers(),
    "log_level": "info",
}


def get_config_path() -> Path:
    return Path.cwd() / "cardstamp.yaml"


def _deep_merge(base: dict[str, Any], incoming: dict[str, Any]) -> dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in incoming.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(path: Path | None = None) -> dict[str, Any]:
    cfg_path = path or get_config_path()
    if not cfg_path.exists():
        return copy.deepcopy(DEFAULT_CONFIG)

    text = cfg_path.read_text(encoding="utf-8")
    loaded = yaml.safe_load(text) or {}
    if not isinstance(loaded, dict):
        loaded = {}
    cfg = _deep_merge(DEFAULT_CONFIG, loaded)
    if not cfg.get("prefetch_workers"):
        cfg["prefetch_workers"] = default_prefetch_workers()
    return cfg


def write_default_config(path: Path | None = None, force: bool = False) -> Path:
    cfg_path = path or get_config_path()
    cfg_path.parent.mkdir(parents=True, exist_ok=True)
    if cfg_path.exists() and not force:
        return cfg_path
    cfg = copy.deepcopy(DEFAULT_CONFIG)
    cfg_path.write_text(yaml.safe_dump(cfg, sort_keys=False, allow_unicode=True), encoding="utf-8")
    return cfg_path


def get_app_root(cfg: dict[str, Any]) -> Path:
    """Directory that relative template, asset and output paths hang off."""
    root = cfg.get("app_root")
    if not root:
        return Path.cwd()
    return Path(str(root)).expanduser().resolve(strict=False)


def resolve_app_path(cfg: dict[str, Any], key: str) -> Path:
    path = Path(str(cfg.get(key) or DEFAULT_CONFIG[key])).expanduser()
    if path.is_absolute():
        return path
    return get_app_root(cfg) / path


def brand_font_settings(cfg: dict[str, Any]) -> tuple[Path, str]:
    font = cfg.get("brand_font") or {}
    family = str(font.get("family") or BRAND_FONT_FAMILY)
    path = Path(str(font.get("path") or DEFAULT_CONFIG["brand_font"]["path"])).expanduser()
    if not path.is_absolute():
        path = get_app_root(cfg) / path
    return path, family


def render_options_from_config(cfg: dict[str, Any]) -> RenderOptions:
    _font_path, family = brand_font_settings(cfg)
    return RenderOptions(
        app_root=get_app_root(cfg),
        fallback_background=str(cfg.get("fallback_background") or DEFAULT_CONFIG["fallback_background"]),
        default_size=(
            max(1, int(cfg.get("default_width") or DEFAULT_CANVAS_SIZE[0])),
            max(1, int(cfg.get("default_height") or DEFAULT_CANVAS_SIZE[1])),
        ),
        blank_fill=str(cfg.get("blank_fill") or DEFAULT_BLANK_FILL),
        brand_font_family=family,
        prefetch_workers=max(1, int(cfg.get("prefetch_workers") or default_prefetch_workers())),
        fetch_timeout=max(0.1, float(cfg.get("fetch_timeout") or 15)),
    )

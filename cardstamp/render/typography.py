from __future__ import annotations

import logging
import os
import platform
import threading
from functools import lru_cache
from pathlib import Path

from PIL import ImageDraw, ImageFont

from cardstamp.constants import ALIGN_CENTER, ALIGN_RIGHT, GENERIC_FONT_FAMILY

LOGGER = logging.getLogger("cardstamp")

_FONT_FILE_SUFFIXES = {".ttf", ".ttc", ".otf", ".otc"}
_GENERIC_FAMILIES = {"sans-serif", "serif", "monospace", "system-ui"}
# FreeType rejects pixel sizes above 0xFFFF.
MAX_FONT_PIXEL_SIZE = 4096

# Canvas text anchors: horizontal alignment with the baseline sitting on y.
_ANCHORS = {
    ALIGN_RIGHT: "rs",
    ALIGN_CENTER: "ms",
}


def _system_font_candidates() -> list[Path]:
    system = platform.system().lower()
    if "windows" in system:
        return [
            Path(r"C:\Windows\Fonts\arial.ttf"),
            Path(r"C:\Windows\Fonts\segoeui.ttf"),
            Path(r"C:\Windows\Fonts\msyh.ttc"),
        ]
    if "darwin" in system:
        return [
            Path("/System/Library/Fonts/Helvetica.ttc"),
            Path("/Library/Fonts/Arial Unicode.ttf"),
            Path("/System/Library/Fonts/PingFang.ttc"),
        ]
    return [
        Path("/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf"),
        Path("/usr/share/fonts/dejavu/DejaVuSans.ttf"),
        Path("/usr/share/fonts/truetype/liberation/LiberationSans-Regular.ttf"),
        Path("/usr/share/fonts/opentype/noto/NotoSansCJK-Regular.ttc"),
    ]


def _system_font_directories() -> list[Path]:
    system = platform.system().lower()
    roots: list[Path] = []
    if "windows" in system:
        windows_dir = Path(os.environ.get("WINDIR", r"C:\Windows"))
        roots.append(windows_dir / "Fonts")
        local_app_data = os.environ.get("LOCALAPPDATA")
        if local_app_data:
            roots.append(Path(local_app_data) / "Microsoft" / "Windows" / "Fonts")
    elif "darwin" in system:
        roots.extend(
            [
                Path("/System/Library/Fonts"),
                Path("/Library/Fonts"),
                Path.home() / "Library" / "Fonts",
            ]
        )
    else:
        roots.extend(
            [
                Path("/usr/share/fonts"),
                Path("/usr/local/share/fonts"),
                Path.home() / ".fonts",
                Path.home() / ".local" / "share" / "fonts",
            ]
        )
    return roots


def normalize_family(family: str) -> str:
    return "".join(ch for ch in family.lower() if ch.isalnum())


@lru_cache(maxsize=1)
def system_font_index() -> dict[str, Path]:
    """Map normalized file stems of installed fonts to their paths."""
    index: dict[str, Path] = {}
    for root in _system_font_directories():
        if not root.is_dir():
            continue
        for dir_path, _dir_names, file_names in os.walk(root, onerror=lambda _err: None):
            for file_name in sorted(file_names):
                candidate = Path(dir_path) / file_name
                if candidate.suffix.lower() not in _FONT_FILE_SUFFIXES:
                    continue
                index.setdefault(normalize_family(candidate.stem), candidate)
    return index


def split_family_chain(family: str) -> list[str]:
    families: list[str] = []
    for part in (family or "").split(","):
        name = part.strip().strip("\"'").strip()
        if name:
            families.append(name)
    return families


def font_string(size: float, family: str) -> str:
    return f"{format_size(size)}px {family}, {GENERIC_FONT_FAMILY}"


def format_size(size: float) -> str:
    value = float(size)
    return str(int(value)) if value.is_integer() else str(value)


class FontRegistry:
    """Families registered from font files, with system lookup as the fallback."""

    def __init__(self, use_system_fonts: bool = True) -> None:
        self._families: dict[str, Path] = {}
        self._lock = threading.Lock()
        self.use_system_fonts = use_system_fonts

    def register(self, path: Path, family: str) -> None:
        # Validate eagerly so a broken file is reported at bootstrap.
        ImageFont.truetype(str(path), size=12)
        with self._lock:
            self._families[normalize_family(family)] = path

    def try_register(self, path: Path, family: str) -> bool:
        try:
            self.register(path, family)
        except OSError as exc:
            LOGGER.warning("Failed to register font %s at %s: %s", family, path, exc)
            return False
        LOGGER.info("Font registered: %s -> %s", family, path)
        return True

    def is_available(self, family: str) -> bool:
        return self.lookup(family) is not None

    def lookup(self, family: str) -> Path | None:
        key = normalize_family(family)
        if not key:
            return None
        path = self._families.get(key)
        if path is not None:
            return path
        if self.use_system_fonts:
            return system_font_index().get(key)
        return None

    def resolve_font(self, family: str, size: float) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
        pixel_size = min(MAX_FONT_PIXEL_SIZE, max(1, int(round(float(size)))))
        for name in split_family_chain(family):
            if name.lower() in _GENERIC_FAMILIES:
                break
            path = self.lookup(name)
            if path is None:
                continue
            font = _load_truetype(path, pixel_size)
            if font is not None:
                return font
        return generic_font(pixel_size)


def _load_truetype(path: Path, size: int) -> ImageFont.FreeTypeFont | None:
    try:
        return ImageFont.truetype(str(path), size=size)
    except OSError:
        return None


def generic_font(size: int) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
    for candidate in _system_font_candidates():
        if candidate.exists():
            font = _load_truetype(candidate, size)
            if font is not None:
                return font
    try:
        return ImageFont.load_default(size=size)
    except OSError as exc:
        LOGGER.warning("Default font unavailable at size %s: %s", size, exc)
        return ImageFont.load_default()


def single_line(text: str) -> str:
    return text.replace("\r\n", " ").replace("\n", " ").replace("\r", " ")


def text_anchor(align: str) -> str:
    return _ANCHORS.get(align, "ls")


def draw_text_line(
    draw: ImageDraw.ImageDraw,
    position: tuple[float, float],
    text: str,
    *,
    font: ImageFont.FreeTypeFont | ImageFont.ImageFont,
    fill: tuple[int, ...],
    align: str,
) -> None:
    line = single_line(text)
    if not line:
        return
    if isinstance(font, ImageFont.FreeTypeFont):
        draw.text(position, line, font=font, fill=fill, anchor=text_anchor(align))
        return
    # Bitmap fonts have no anchor support; place the line by hand.
    x, y = position
    width = draw.textlength(line, font=font)
    if align == ALIGN_RIGHT:
        x -= width
    elif align == ALIGN_CENTER:
        x -= width / 2.0
    bottom = font.getbbox(line)[3]
    draw.text((x, y - bottom), line, font=font, fill=fill)

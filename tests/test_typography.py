from pathlib import Path

import pytest
from PIL import Image, ImageDraw

from cardstamp.render import typography
from cardstamp.render.typography import (
    FontRegistry,
    draw_text_line,
    font_string,
    single_line,
    split_family_chain,
    text_anchor,
)


def _ink_columns_rows(image: Image.Image) -> tuple[list[int], list[int]]:
    xs: list[int] = []
    ys: list[int] = []
    for py in range(image.height):
        for px in range(image.width):
            if image.getpixel((px, py))[0] < 128:
                xs.append(px)
                ys.append(py)
    return xs, ys


def _draw(align: str) -> Image.Image:
    image = Image.new("RGB", (400, 120), "#FFFFFF")
    font = typography.generic_font(40)
    draw_text_line(ImageDraw.Draw(image), (200, 80), "HMMH", font=font, fill=(0, 0, 0), align=align)
    return image


def test_font_string_appends_generic_family() -> None:
    assert font_string(24, "DB-Adman-X") == "24px DB-Adman-X, sans-serif"
    assert font_string(18.5, "Arial") == "18.5px Arial, sans-serif"


def test_split_family_chain_strips_quotes() -> None:
    assert split_family_chain('"DB-Adman-X", Arial, sans-serif') == ["DB-Adman-X", "Arial", "sans-serif"]
    assert split_family_chain("") == []


def test_text_anchor_defaults_to_left_baseline() -> None:
    assert text_anchor("left") == "ls"
    assert text_anchor("right") == "rs"
    assert text_anchor("center") == "ms"
    assert text_anchor("bogus") == "ls"


def test_single_line_flattens_newlines() -> None:
    assert single_line("a\nb\r\nc") == "a b c"


def test_alignment_anchors_on_x_and_baseline_on_y() -> None:
    left_xs, left_ys = _ink_columns_rows(_draw("left"))
    right_xs, _ = _ink_columns_rows(_draw("right"))
    center_xs, _ = _ink_columns_rows(_draw("center"))

    assert left_xs and right_xs and center_xs
    assert min(left_xs) >= 198
    assert max(right_xs) <= 202
    assert min(center_xs) < 200 < max(center_xs)
    assert abs((min(center_xs) + max(center_xs)) / 2 - 200) <= 4
    assert max(left_ys) <= 81


def test_registry_prefers_registered_family(monkeypatch, tmp_path: Path) -> None:
    loaded: list[str] = []
    sentinel = object()
    font_file = tmp_path / "Brand.ttf"
    font_file.write_bytes(b"fake")

    def _fake_truetype(path, size):
        loaded.append(str(path))
        return sentinel

    monkeypatch.setattr(typography.ImageFont, "truetype", _fake_truetype)
    registry = FontRegistry(use_system_fonts=False)
    registry.register(font_file, "DB-Adman-X")

    assert registry.is_available("db adman x")
    assert registry.resolve_font('"DB-Adman-X", sans-serif', 30) is sentinel
    assert loaded[-1] == str(font_file)


def test_registry_falls_back_to_generic_font(monkeypatch) -> None:
    sentinel = object()
    monkeypatch.setattr(typography, "generic_font", lambda size: sentinel)
    registry = FontRegistry(use_system_fonts=False)

    assert not registry.is_available("Missing Family")
    assert registry.resolve_font("Missing Family", 24) is sentinel
    assert registry.resolve_font("sans-serif", 24) is sentinel


def test_try_register_reports_broken_font(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    broken = tmp_path / "broken.ttf"
    broken.write_bytes(b"not a font")
    registry = FontRegistry(use_system_fonts=False)

    assert registry.try_register(broken, "Broken") is False
    assert registry.try_register(tmp_path / "missing.ttf", "Missing") is False
    assert not registry.is_available("Broken")
    assert "Failed to register font" in caplog.text


def test_oversized_font_size_is_clamped(monkeypatch) -> None:
    monkeypatch.setattr(typography, "_system_font_candidates", lambda: [])
    registry = FontRegistry(use_system_fonts=False)

    font = registry.resolve_font("sans-serif", 100000)

    assert getattr(font, "size", 0) <= typography.MAX_FONT_PIXEL_SIZE


def test_generic_font_survives_rejected_size(monkeypatch) -> None:
    original = typography.ImageFont.load_default

    def _load_default(size=None):
        if size is not None:
            raise OSError("invalid pixel size")
        return original()

    monkeypatch.setattr(typography, "_system_font_candidates", lambda: [])
    monkeypatch.setattr(typography.ImageFont, "load_default", _load_default)

    assert typography.generic_font(70000) is not None

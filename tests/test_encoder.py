import base64
from pathlib import Path

from PIL import Image

from cardstamp.render.encoder import PNG_SIGNATURE, encode_png, png_data_url, publish_png


def _png() -> bytes:
    return encode_png(Image.new("RGBA", (4, 3), (10, 20, 30, 255)))


def test_encode_png_signature() -> None:
    assert _png().startswith(PNG_SIGNATURE)


def test_png_data_url_round_trips_bytes() -> None:
    data = _png()
    url = png_data_url(data)
    prefix = "data:image/png;base64,"
    assert url.startswith(prefix)
    assert base64.b64decode(url[len(prefix):]) == data


def test_publish_with_base_url(tmp_path: Path) -> None:
    data = _png()
    path, url = publish_png(data, tmp_path / "public", "https://cards.example.com/")

    assert path.parent == tmp_path / "public"
    assert path.read_bytes() == data
    assert path.suffix == ".png"
    assert url == f"https://cards.example.com/i/{path.name}"


def test_publish_preview_prefix_without_base_url(tmp_path: Path) -> None:
    path, url = publish_png(_png(), tmp_path, prefix="preview-")

    assert path.name.startswith("preview-")
    assert url == str(path)


def test_publish_uses_unique_names(tmp_path: Path) -> None:
    first, _ = publish_png(_png(), tmp_path)
    second, _ = publish_png(_png(), tmp_path)
    assert first != second

import io
from pathlib import Path

import pytest
import requests
from PIL import Image

from cardstamp.assets import AssetAcquirer, is_remote, resolve_local_path
from cardstamp.errors import AssetError


class _FakeResponse:
    def __init__(self, status_code: int, content: bytes = b"") -> None:
        self.status_code = status_code
        self.content = content


class _FakeSession:
    def __init__(self, response: _FakeResponse | None = None, error: Exception | None = None) -> None:
        self.response = response
        self.error = error
        self.calls: list[tuple[str, float]] = []

    def get(self, url: str, timeout: float) -> _FakeResponse:
        self.calls.append((url, timeout))
        if self.error is not None:
            raise self.error
        assert self.response is not None
        return self.response


def _png_bytes(size: tuple[int, int] = (8, 6), color: str = "#FF0000") -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


def test_is_remote() -> None:
    assert is_remote("http://example.com/a.png")
    assert is_remote("https://example.com/a.png")
    assert not is_remote("assets/a.png")
    assert not is_remote("/abs/a.png")


def test_resolve_local_path_relative_to_app_root(tmp_path: Path) -> None:
    assert resolve_local_path("assets/a.png", tmp_path) == tmp_path / "assets" / "a.png"
    absolute = tmp_path / "elsewhere.png"
    assert resolve_local_path(str(absolute), Path("/unused")) == absolute


def test_read_local_relative_path(tmp_path: Path) -> None:
    (tmp_path / "assets").mkdir()
    (tmp_path / "assets" / "bg.png").write_bytes(_png_bytes((12, 7)))

    image = AssetAcquirer(tmp_path).acquire("assets/bg.png")

    assert image.size == (12, 7)
    assert image.mode == "RGBA"
    assert image.getpixel((0, 0)) == (255, 0, 0, 255)


def test_read_local_missing_file(tmp_path: Path) -> None:
    with pytest.raises(AssetError) as exc_info:
        AssetAcquirer(tmp_path).acquire("nope.png")
    assert "file not found" in str(exc_info.value)
    assert exc_info.value.source == "nope.png"


def test_read_local_empty_source(tmp_path: Path) -> None:
    with pytest.raises(AssetError):
        AssetAcquirer(tmp_path).acquire("")


def test_read_local_undecodable_file(tmp_path: Path) -> None:
    (tmp_path / "broken.png").write_bytes(b"definitely not a png")
    with pytest.raises(AssetError) as exc_info:
        AssetAcquirer(tmp_path).acquire("broken.png")
    assert "cannot decode" in str(exc_info.value)


def test_fetch_decodes_success_body(tmp_path: Path) -> None:
    session = _FakeSession(_FakeResponse(200, _png_bytes((5, 4), "#00FF00")))
    acquirer = AssetAcquirer(tmp_path, timeout=3.5, session=session)

    image = acquirer.acquire("https://cdn.example.com/avatar.png")

    assert image.size == (5, 4)
    assert image.getpixel((2, 2)) == (0, 255, 0, 255)
    assert session.calls == [("https://cdn.example.com/avatar.png", 3.5)]


def test_fetch_non_success_status_carries_code(tmp_path: Path) -> None:
    session = _FakeSession(_FakeResponse(404, b"missing"))
    with pytest.raises(AssetError) as exc_info:
        AssetAcquirer(tmp_path, session=session).acquire("https://cdn.example.com/gone.png")
    assert exc_info.value.status_code == 404
    assert "404" in str(exc_info.value)


def test_fetch_transport_error(tmp_path: Path) -> None:
    session = _FakeSession(error=requests.ConnectionError("connection refused"))
    with pytest.raises(AssetError) as exc_info:
        AssetAcquirer(tmp_path, session=session).acquire("http://127.0.0.1:9/x.png")
    assert exc_info.value.status_code is None
    assert "connection refused" in str(exc_info.value)


def test_fetch_uses_requests_get_without_session(monkeypatch, tmp_path: Path) -> None:
    calls: list[str] = []

    def _fake_get(url: str, timeout: float) -> _FakeResponse:
        calls.append(url)
        return _FakeResponse(200, b"")

    monkeypatch.setattr(requests, "get", _fake_get)
    with pytest.raises(AssetError):
        AssetAcquirer(tmp_path).acquire("https://cdn.example.com/empty.png")
    assert calls == ["https://cdn.example.com/empty.png"]

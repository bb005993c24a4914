from __future__ import annotations

import base64
import io
import uuid
from pathlib import Path

from PIL import Image

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"


def encode_png(image: Image.Image) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format="PNG", optimize=True)
    return buffer.getvalue()


def png_data_url(data: bytes) -> str:
    return "data:image/png;base64," + base64.b64encode(data).decode("ascii")


def write_png(data: bytes, path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    return path


def publish_png(data: bytes, public_dir: Path, base_url: str = "", prefix: str = "") -> tuple[Path, str]:
    """Store the PNG under a random name and return its path and retrieval URL.

    Without a base URL the file path itself is returned as the location.
    """
    filename = f"{prefix}{uuid.uuid4()}.png"
    path = write_png(data, public_dir / filename)
    base = base_url.rstrip("/")
    url = f"{base}/i/{filename}" if base else str(path)
    return path, url

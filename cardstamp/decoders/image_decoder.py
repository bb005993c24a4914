from __future__ import annotations

import io
from pathlib import Path

from PIL import Image, ImageOps, UnidentifiedImageError


def _normalize(image: Image.Image) -> Image.Image:
    return ImageOps.exif_transpose(image).convert("RGBA").copy()


def decode_image(path: Path) -> Image.Image:
    with Image.open(path) as image:
        return _normalize(image)


def decode_bytes(data: bytes, label: str = "<bytes>") -> Image.Image:
    if not data:
        raise ValueError(f"empty image payload: {label}")
    try:
        with Image.open(io.BytesIO(data)) as image:
            return _normalize(image)
    except UnidentifiedImageError as exc:
        raise ValueError(f"unsupported image data: {label}") from exc

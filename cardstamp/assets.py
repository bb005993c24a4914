from __future__ import annotations

import logging
from pathlib import Path

import requests
from PIL import Image

from cardstamp.constants import REMOTE_PREFIXES
from cardstamp.decoders.image_decoder import decode_bytes, decode_image
from cardstamp.errors import AssetError

LOGGER = logging.getLogger("cardstamp")


def is_remote(source: str) -> bool:
    return source.startswith(REMOTE_PREFIXES)


def resolve_local_path(source: str, app_root: Path) -> Path:
    path = Path(source).expanduser()
    if path.is_absolute():
        return path
    return app_root / path


class AssetAcquirer:
    """Turns a source descriptor (local path or http(s) URL) into a decoded image."""

    def __init__(
        self,
        app_root: Path,
        *,
        timeout: float = 15.0,
        session: requests.Session | None = None,
    ) -> None:
        self.app_root = app_root
        self.timeout = timeout
        self.session = session

    def describe(self, source: str) -> str:
        if is_remote(source):
            return source
        return str(resolve_local_path(source, self.app_root))

    def acquire(self, source: str) -> Image.Image:
        if is_remote(source):
            return self._fetch(source)
        return self._read_local(source)

    def _fetch(self, url: str) -> Image.Image:
        getter = self.session.get if self.session is not None else requests.get
        LOGGER.debug("asset fetch url=%s", url)
        try:
            resp = getter(url, timeout=self.timeout)
        except requests.RequestException as exc:
            raise AssetError(url, f"request failed: {exc}") from exc
        if not 200 <= resp.status_code < 300:
            raise AssetError(url, f"Failed to fetch image: {resp.status_code}", status_code=resp.status_code)
        try:
            return decode_bytes(resp.content, label=url)
        except (OSError, ValueError, Image.DecompressionBombError) as exc:
            raise AssetError(url, str(exc)) from exc

    def _read_local(self, source: str) -> Image.Image:
        if not source.strip():
            raise AssetError(source, "empty image source")
        path = resolve_local_path(source, self.app_root)
        LOGGER.debug("asset load local path=%s", path)
        try:
            return decode_image(path)
        except FileNotFoundError as exc:
            raise AssetError(source, f"file not found: {path}") from exc
        except (OSError, ValueError, Image.DecompressionBombError) as exc:
            raise AssetError(source, f"cannot decode {path}: {exc}") from exc

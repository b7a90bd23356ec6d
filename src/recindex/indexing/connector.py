"""Blocking HTTP connector for remote resources (external page images)."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

import requests

logger = logging.getLogger(__name__)

DEFAULT_FETCH_TIMEOUT_SECONDS = 30.0


@dataclass(slots=True)
class RemoteFetchError(RuntimeError):
    """A remote resource could not be fetched."""

    url: str
    message: str

    def __str__(self) -> str:
        return f"{self.message} (url={self.url})"


def is_remote_url(value: str | None) -> bool:
    if not value:
        return False
    return urlparse(value).scheme in {"http", "https"}


class HttpConnector:
    """Fetch bytes over HTTP with a mandatory timeout and no retries."""

    def __init__(self, session: Any | None = None, *, default_timeout: float = DEFAULT_FETCH_TIMEOUT_SECONDS) -> None:
        if default_timeout <= 0:
            raise ValueError("default_timeout must be positive")
        self._session = session or requests.Session()
        self._default_timeout = default_timeout

    def fetch(self, url: str, timeout: float | None = None) -> bytes:
        if not is_remote_url(url):
            raise RemoteFetchError(url, "Only http(s) URLs can be fetched")

        effective_timeout = self._default_timeout if timeout is None else timeout
        try:
            response = self._session.get(url, timeout=effective_timeout)
        except requests.Timeout as exc:
            raise RemoteFetchError(url, f"Timed out after {effective_timeout}s") from exc
        except requests.RequestException as exc:
            raise RemoteFetchError(url, f"Request failed: {exc}") from exc

        if not 200 <= response.status_code < 300:
            raise RemoteFetchError(url, f"Unexpected HTTP status {response.status_code}")
        return response.content

    def download(self, url: str, target_dir: Path, timeout: float | None = None) -> Path:
        """Fetch ``url`` into ``target_dir`` under its last path segment."""

        payload = self.fetch(url, timeout)
        name = Path(urlparse(url).path).name or "download.bin"
        target_dir.mkdir(parents=True, exist_ok=True)
        target = target_dir / name
        target.write_bytes(payload)
        logger.debug("Downloaded %s to %s (%d bytes)", url, target, len(payload))
        return target

    def close(self) -> None:
        close = getattr(self._session, "close", None)
        if close is not None:
            close()

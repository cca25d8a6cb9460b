from __future__ import annotations

import hashlib
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import unquote, urlparse

import requests

from wheel_rule_engine.strategies import StrategyNotApplicable, WheelFetchStrategy

_CHUNK_BYTES = 1024 * 1024


# -------------------------
# helpers
# -------------------------

def _ensure_parent_dir(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def sha256_file(path: Path) -> str:
    h = hashlib.sha256()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK_BYTES), b""):
            h.update(chunk)
    return h.hexdigest()


def url_basename(url: str) -> str:
    """
    Last path segment of a URL, ignoring query and fragment.
    """
    return Path(unquote(urlparse(url).path)).name


# -------------------------
# strategies
# -------------------------

@dataclass(frozen=True)
class HttpWheelFetchStrategy(WheelFetchStrategy):
    name: str = "wheel_http"
    precedence: int = 50
    timeout_s: float = 120.0
    user_agent: str = "wheel-rule-engine/0"
    chunk_bytes: int = _CHUNK_BYTES

    def fetch(self, *, url: str, destination: Path) -> Path:
        if urlparse(url).scheme not in ("http", "https"):
            raise StrategyNotApplicable()

        _ensure_parent_dir(destination)
        headers = {"User-Agent": self.user_agent}

        with requests.get(url, headers=headers, timeout=self.timeout_s, stream=True) as resp:
            resp.raise_for_status()
            with destination.open("wb") as f:
                for chunk in resp.iter_content(chunk_size=self.chunk_bytes):
                    if chunk:
                        f.write(chunk)

        return destination


@dataclass(frozen=True)
class FileUriWheelFetchStrategy(WheelFetchStrategy):
    name: str = "wheel_file_uri"
    precedence: int = 40  # higher priority than HTTP
    chunk_bytes: int = _CHUNK_BYTES

    def fetch(self, *, url: str, destination: Path) -> Path:
        parsed = urlparse(url)
        if parsed.scheme not in ("file", ""):
            raise StrategyNotApplicable()

        src_path = Path(unquote(parsed.path)) if parsed.scheme == "file" else Path(url)
        if not src_path.is_file():
            raise FileNotFoundError(str(src_path))

        _ensure_parent_dir(destination)
        with src_path.open("rb") as r, destination.open("wb") as w:
            for chunk in iter(lambda: r.read(self.chunk_bytes), b""):
                w.write(chunk)

        return destination

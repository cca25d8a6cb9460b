from __future__ import annotations

import tempfile
from dataclasses import dataclass
from pathlib import Path


@dataclass(slots=True)
class ScratchWorkspace:
    """
    Run-scoped scratch space.

    Properties:
    - Private: each invocation owns its own TemporaryDirectory, so no locking is
      needed for anything written here.
    - Layout: ``resolved/`` receives the resolver's wheels, ``downloads/``
      receives platform siblings fetched during reconciliation.
    - No persistence: the directory is removed on close().
    """

    _tmp: tempfile.TemporaryDirectory[str]
    _root: Path

    def __init__(self, *, prefix: str = "wheel-rule-engine-") -> None:
        self._tmp = tempfile.TemporaryDirectory(prefix=prefix)
        self._root = Path(self._tmp.name).resolve()
        self.resolved_dir.mkdir(parents=True, exist_ok=True)
        self.downloads_dir.mkdir(parents=True, exist_ok=True)

    # -------------------------
    # lifecycle
    # -------------------------

    @property
    def root_path(self) -> Path:
        return self._root

    @property
    def resolved_dir(self) -> Path:
        return self._root / "resolved"

    @property
    def downloads_dir(self) -> Path:
        return self._root / "downloads"

    def close(self) -> None:
        self._tmp.cleanup()

    def __enter__(self) -> ScratchWorkspace:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # -------------------------
    # listing
    # -------------------------

    def resolved_wheels(self) -> list[Path]:
        """
        Wheel files produced by the resolver, sorted by file name.
        """
        return sorted(
            (p for p in self.resolved_dir.iterdir() if p.is_file() and p.suffix == ".whl"),
            key=lambda p: p.name,
        )

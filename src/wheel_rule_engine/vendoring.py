from __future__ import annotations

import logging
import shutil
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from wheel_rule_engine.model.artifacts import StorageMode, WheelSource
from wheel_rule_engine.model.errors import ConfigError


def rename_if_not_exists(old_path: Path, new_path: Path) -> bool:
    """
    Move ``old_path`` to ``new_path`` unless ``new_path`` already exists.

    An existing destination is trusted as-is and never overwritten: the
    resolver is not reproducible byte-for-byte, and rewriting a vendored wheel
    would churn its digest. Returns True when a move happened.
    """
    try:
        new_path.stat()
    except FileNotFoundError:
        shutil.move(str(old_path), str(new_path))
        return True
    return False


@dataclass(frozen=True, slots=True)
class VendoringPolicy:
    """
    Decides whether a wheel is vendored into the local wheel directory or kept
    as a remote reference, and performs the placement.

    Applied the same way to wheels found by the resolver and to platform
    siblings fetched during reconciliation.
    """

    wheel_dir: Path | None
    prefer_vendoring: bool

    @property
    def active(self) -> bool:
        return self.prefer_vendoring and self.wheel_dir is not None

    def vendored_path(self, filename: str) -> Path:
        if self.wheel_dir is None:
            raise ConfigError(f"{filename}: no wheel_dir is configured")
        return self.wheel_dir / filename

    def has_vendored(self, filename: str) -> bool:
        return self.active and self.vendored_path(filename).exists()

    def existing(self, filename: str, locator: str) -> WheelSource | None:
        """
        Returns the already-vendored copy of ``filename``, if vendoring is
        active and one exists, so the caller can skip the download.
        """
        if not self.has_vendored(filename):
            return None
        return WheelSource(
            filename=filename,
            locator=locator,
            path=self.vendored_path(filename),
            storage=StorageMode.LOCALLY_VENDORED,
        )

    def place(self, filename: str, scratch_path: Path, locator: str | None) -> WheelSource:
        # a wheel with no remote link was built locally and can only be vendored
        if not (self.active or locator is None):
            return WheelSource(
                filename=filename,
                locator=locator,
                path=scratch_path,
                storage=StorageMode.REMOTE_REFERENCE,
            )

        if self.wheel_dir is None:
            raise ConfigError(
                f"{filename} has no remote link; a wheel_dir is required to vendor it"
            )
        dest = self.vendored_path(filename)
        if rename_if_not_exists(scratch_path, dest):
            logging.debug(f"vendored {filename} -> {dest}")
        else:
            logging.debug(f"keeping existing vendored wheel {dest}")
        return WheelSource(
            filename=filename,
            locator=locator or filename,
            path=dest,
            storage=StorageMode.LOCALLY_VENDORED,
        )


def prune_unused_wheels(wheel_dir: Path, keep: Iterable[Path]) -> list[Path]:
    """
    Delete every file in ``wheel_dir`` that is not in ``keep``.
    """
    wanted = {p.resolve() for p in keep}
    deleted: list[Path] = []
    for path in sorted(wheel_dir.iterdir()):
        if not path.is_file() or path.resolve() in wanted:
            continue
        logging.warning(f"Deleting unused wheel: {path}")
        path.unlink()
        deleted.append(path)
    return deleted

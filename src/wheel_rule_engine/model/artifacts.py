from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from functools import total_ordering
from pathlib import Path
from typing import Any

from wheel_rule_engine.model.names import installed_key, normalize, wheel_file_parts
from wheel_rule_engine.model.platforms import Platform
from wheel_rule_engine.internal.util.multiformat import MultiformatSerializableMixin

_SHA256_RE = re.compile(r"^[0-9a-f]{64}$")


class StorageMode(Enum):
    REMOTE_REFERENCE = "remote_reference"
    LOCALLY_VENDORED = "locally_vendored"


def _sorted_extras(extras: Mapping[str, Iterable[str]]) -> dict[str, tuple[str, ...]]:
    return {name: tuple(sorted(set(extras[name]))) for name in sorted(extras)}


@total_ordering
@dataclass(frozen=True, slots=True)
class WheelArtifact(MultiformatSerializableMixin):
    """
    One concrete wheel file after reconciliation.

    Artifacts order by ``(platform, filename)``; this is the order the rule
    emitter relies on for stable output.

    Attributes:
        filename (str): The wheel file name.
        locator (str): Remote URL, or the file name itself for wheels with no
            remote origin.
        sha256 (str): Hex digest of the bytes on disk at reconciliation time.
        platform (Platform): Classified platform of ``filename``.
        requires (tuple[str, ...]): Runtime dependency entries, sorted.
        extras (Mapping[str, tuple[str, ...]]): Extra name to dependency
            entries, both levels sorted.
        storage (StorageMode): Whether the wheel is referenced remotely or
            vendored into the local wheel directory.
        local_path (Path | None): Resting path of a vendored wheel.
    """

    filename: str
    locator: str
    sha256: str
    platform: Platform
    requires: tuple[str, ...] = field(default=())
    extras: Mapping[str, tuple[str, ...]] = field(default_factory=dict, compare=False)
    storage: StorageMode = StorageMode.REMOTE_REFERENCE
    local_path: Path | None = None

    def __post_init__(self) -> None:
        digest = self.sha256.strip().lower()
        if not _SHA256_RE.match(digest):
            raise ValueError(f"Invalid SHA256 hash: {self.sha256!r}")
        object.__setattr__(self, "sha256", digest)
        object.__setattr__(self, "requires", tuple(sorted(set(self.requires))))
        object.__setattr__(self, "extras", _sorted_extras(self.extras))
        if self.storage is StorageMode.LOCALLY_VENDORED and self.local_path is None:
            raise ValueError(f"{self.filename}: vendored wheel requires local_path")

    @property
    def distribution(self) -> str:
        return wheel_file_parts(self.filename)[0]

    @property
    def version(self) -> str:
        return wheel_file_parts(self.filename)[1]

    @property
    def is_vendored(self) -> bool:
        return self.storage is StorageMode.LOCALLY_VENDORED

    def sort_key(self) -> tuple[Platform, str]:
        return self.platform, self.filename

    def __lt__(self, other: WheelArtifact) -> bool:
        return self.sort_key() < other.sort_key()

    def to_mapping(self, *args: Any, **kwargs: Any) -> dict[str, Any]:
        return {
            "filename": self.filename,
            "locator": self.locator,
            "sha256": self.sha256,
            "platform": self.platform.name,
            "requires": list(self.requires),
            "extras": {k: list(v) for k, v in self.extras.items()},
            "storage": self.storage.value,
            "local_path": self.local_path,
        }


@dataclass(frozen=True, slots=True)
class PackageDependency:
    """
    All reconciled wheels of one package; the unit consumed by the rule emitter.

    The first artifact is canonical: its dependencies and extras stand in for
    every platform variant.
    """

    name: str
    artifacts: tuple[WheelArtifact, ...]

    def __post_init__(self) -> None:
        if not self.artifacts:
            raise ValueError(f"{self.name}: a dependency needs at least one wheel")
        object.__setattr__(self, "artifacts", tuple(sorted(self.artifacts)))

    @property
    def library_name(self) -> str:
        return normalize(self.name)

    @property
    def is_multi_platform(self) -> bool:
        return len(self.artifacts) > 1

    @property
    def canonical(self) -> WheelArtifact:
        return self.artifacts[0]


@dataclass(frozen=True, slots=True)
class InstalledPackageSet:
    """
    Normalized names of every package resolved in this run.
    """

    names: frozenset[str] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        object.__setattr__(self, "names", frozenset(installed_key(n) for n in self.names))

    @classmethod
    def of(cls, names: Iterable[str]) -> InstalledPackageSet:
        return cls(frozenset(names))

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and installed_key(name) in self.names

    def __len__(self) -> int:
        return len(self.names)

    def covers(self, names: Iterable[str]) -> bool:
        return all(n in self for n in names)


@dataclass(frozen=True, slots=True)
class WheelSource:
    """
    A wheel file placed by the vendoring policy but not yet hashed or inspected.
    """

    filename: str
    locator: str
    path: Path
    storage: StorageMode = StorageMode.REMOTE_REFERENCE

    @property
    def is_vendored(self) -> bool:
        return self.storage is StorageMode.LOCALLY_VENDORED

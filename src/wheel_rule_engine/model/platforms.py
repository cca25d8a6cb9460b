from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from functools import total_ordering
from typing import Any

from typing_extensions import Self


@dataclass(frozen=True, slots=True)
class PlatformDef:
    """
    One entry of the platform table.

    Attributes:
        name (str): build-system platform label suffix, e.g. ``linux``.
        token (str): substring identifying the platform in a wheel file name.
    """

    name: str
    token: str

    def to_mapping(self) -> dict[str, Any]:
        return {"name": self.name, "token": self.token}

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> Self:
        return cls(name=str(mapping["name"]), token=str(mapping["token"]))


DEFAULT_PLATFORM_DEFS: tuple[PlatformDef, ...] = (
    PlatformDef("osx", "-cp311-cp311-macosx_"),
    PlatformDef("linux", "-cp311-cp311-manylinux"),
)


@total_ordering
@dataclass(frozen=True, slots=True)
class Platform:
    name: str
    token: str = field(default="", compare=False)
    rank: int = field(default=0, compare=False)

    @property
    def is_universal(self) -> bool:
        return not self.name

    def __lt__(self, other: Platform) -> bool:
        return (self.rank, self.name) < (other.rank, other.name)

    def __str__(self) -> str:
        return self.name or "universal"


# sorts after every real platform
UNIVERSAL = Platform(name="", rank=1 << 16)


class PlatformClassifier:
    """
    Maps wheel file names to platforms by substring match against an ordered
    platform table. First match wins; no match is universal.
    """

    __slots__ = ("_platforms",)

    def __init__(self, defs: Iterable[PlatformDef] = DEFAULT_PLATFORM_DEFS) -> None:
        self._platforms: tuple[Platform, ...] = tuple(
            Platform(name=d.name, token=d.token, rank=i) for i, d in enumerate(defs)
        )

    @property
    def platforms(self) -> Sequence[Platform]:
        return self._platforms

    def classify(self, filename: str) -> Platform:
        for platform in self._platforms:
            if platform.token and platform.token in filename:
                return platform
        return UNIVERSAL

    def matches(self, filename: str, platform: Platform) -> bool:
        return bool(platform.token) and platform.token in filename

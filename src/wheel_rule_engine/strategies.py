from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path


class StrategyNotApplicable(Exception):
    """
    Used for normal control flow: "this strategy does not handle this URL".
    """

    pass


@dataclass(frozen=True, slots=True)
class WheelFetchStrategy(ABC):
    """
    Base download strategy.

    A strategy only moves bytes from a URL to a destination path. It does not
    hash, vendor or otherwise interpret the wheel.
    """

    name: str
    precedence: int = 100

    @abstractmethod
    def fetch(self, *, url: str, destination: Path) -> Path:
        """
        Fetch ``url`` into ``destination`` and return the written path.

        Raise:
          - StrategyNotApplicable when the URL scheme is not handled
          - any other exception for real failures while fetching
        """
        raise NotImplementedError

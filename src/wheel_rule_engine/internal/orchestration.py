from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from wheel_rule_engine.model.errors import DownloadError
from wheel_rule_engine.strategies import StrategyNotApplicable, WheelFetchStrategy


@dataclass(frozen=True, slots=True)
class StrategyChainWheelFetcher:
    """
    Download collaborator that tries strategies in ``(precedence, name)`` order.

    A strategy that is not applicable passes to the next one. Any other failure
    is fatal: a wheel that exists but cannot be fetched must stop the run.
    """

    strategies: Sequence[WheelFetchStrategy]

    def __post_init__(self) -> None:
        ordered = tuple(sorted(self.strategies, key=lambda s: (s.precedence, s.name)))
        object.__setattr__(self, "strategies", ordered)

    def fetch(self, url: str, destination: Path) -> Path:
        for strategy in self.strategies:
            try:
                path = strategy.fetch(url=url, destination=destination)
            except StrategyNotApplicable:
                logging.debug(f"strategy not applicable: {strategy.name} url={url}")
                continue
            except Exception as e:
                logging.debug(
                    f"strategy failed: {strategy.name} url={url} err={type(e).__name__}: {e}"
                )
                raise DownloadError(
                    f"error downloading {url}: {e}", url=url, causes=(e,)
                ) from e
            logging.debug(f"fetched {url} -> {path}")
            return path

        raise DownloadError(f"no download strategy applies to {url}", url=url)

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from wheel_rule_engine.model.artifacts import WheelSource
from wheel_rule_engine.model.errors import AmbiguityWarning
from wheel_rule_engine.model.names import wheel_file_parts
from wheel_rule_engine.model.platforms import Platform, PlatformClassifier
from wheel_rule_engine.vendoring import VendoringPolicy


class WheelFetcher(Protocol):
    def fetch(self, url: str, destination: Path) -> Path: ...


@dataclass(frozen=True, slots=True)
class Candidate:
    filename: str
    locator: str


def choose_candidate(a: Candidate, b: Candidate) -> tuple[Candidate, Candidate]:
    """
    Pick between two candidates for the same platform.

    Returns ``(kept, discarded)``; the lexicographically larger locator is kept
    so the choice never depends on enumeration order.
    """
    if a.locator >= b.locator:
        return a, b
    return b, a


@dataclass(frozen=True, slots=True)
class Reconciliation:
    """
    Every wheel selected for one package, sorted by ``(platform, filename)``,
    plus the non-fatal findings made while selecting them.
    """

    package: str
    sources: tuple[WheelSource, ...]
    warnings: tuple[AmbiguityWarning, ...] = ()


@dataclass(slots=True)
class PlatformReconciler:
    """
    Finds or fetches the platform siblings of a platform-specific wheel.

    Siblings are looked up among the wheel links reported by the resolver by
    exact ``name-version-`` prefix. Missing platforms are a warning, not an
    error: the package may simply need compilation on that platform.
    """

    classifier: PlatformClassifier
    fetcher: WheelFetcher
    vendoring: VendoringPolicy
    scratch_dir: Path
    max_workers: int = 4

    def reconcile(
        self, discovered: WheelSource, links: Mapping[str, str]
    ) -> Reconciliation:
        package, _ = wheel_file_parts(discovered.filename)
        platform = self.classifier.classify(discovered.filename)
        if platform.is_universal:
            return Reconciliation(package=package, sources=(discovered,))

        chosen, warnings = self.select_siblings(discovered.filename, platform, links)
        if len(chosen) + 1 != len(self.classifier.platforms):
            warnings.append(
                AmbiguityWarning(
                    f"could not find all platforms for {discovered.filename}; needs compilation?",
                    kind=AmbiguityWarning.INCOMPLETE_COVERAGE,
                    package=package,
                )
            )

        for w in warnings:
            logging.warning(str(w))

        fetched = self._acquire_all([chosen[p] for p in sorted(chosen)])
        sources = sorted(
            [discovered, *fetched],
            key=lambda s: (self.classifier.classify(s.filename), s.filename),
        )
        return Reconciliation(
            package=package, sources=tuple(sources), warnings=tuple(warnings)
        )

    def select_siblings(
        self, filename: str, held: Platform, links: Mapping[str, str]
    ) -> tuple[dict[Platform, Candidate], list[AmbiguityWarning]]:
        name, version = wheel_file_parts(filename)
        prefix = f"{name}-{version}-"

        chosen: dict[Platform, Candidate] = {}
        warnings: list[AmbiguityWarning] = []
        for wheel_file in sorted(links):
            if wheel_file == filename or not wheel_file.startswith(prefix):
                continue
            for platform in self.classifier.platforms:
                if platform == held or not self.classifier.matches(wheel_file, platform):
                    continue
                candidate = Candidate(filename=wheel_file, locator=links[wheel_file])
                existing = chosen.get(platform)
                if existing is not None:
                    candidate, discarded = choose_candidate(existing, candidate)
                    warnings.append(
                        AmbiguityWarning(
                            f"two acceptable {platform} wheels found for {name}-{version}: "
                            f"picking {candidate.filename} instead of {discarded.filename}",
                            kind=AmbiguityWarning.DUPLICATE_CANDIDATE,
                            package=name,
                            kept=candidate.locator,
                            discarded=discarded.locator,
                        )
                    )
                chosen[platform] = candidate
        return chosen, warnings

    # -------------------------
    # acquisition
    # -------------------------

    def _acquire_all(self, candidates: Sequence[Candidate]) -> list[WheelSource]:
        if len(candidates) <= 1 or self.max_workers <= 1:
            return [self._acquire(c) for c in candidates]
        workers = min(self.max_workers, len(candidates))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            return list(executor.map(self._acquire, candidates))

    def _acquire(self, candidate: Candidate) -> WheelSource:
        existing = self.vendoring.existing(candidate.filename, candidate.locator)
        if existing is not None:
            logging.debug(f"reusing vendored wheel {existing.path}")
            return existing

        destination = self.scratch_dir / candidate.filename
        logging.debug(f"downloading {candidate.locator}")
        path = self.fetcher.fetch(candidate.locator, destination)
        return self.vendoring.place(candidate.filename, path, candidate.locator)

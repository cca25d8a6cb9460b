from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from wheel_rule_engine.model.artifacts import (
    InstalledPackageSet,
    PackageDependency,
    WheelArtifact,
)
from wheel_rule_engine.model.errors import AmbiguityWarning
from wheel_rule_engine.model.names import normalize
from wheel_rule_engine.model.platforms import Platform
from wheel_rule_engine.reconcile import Candidate, choose_candidate


def _merge(
    name: str,
    artifacts: Iterable[WheelArtifact],
    warnings: list[AmbiguityWarning],
) -> tuple[WheelArtifact, ...]:
    """
    Keep exactly one artifact per platform, by the same locator tie-break the
    reconciler uses. Every discarded file is reported in ``warnings``.
    """
    by_platform: dict[Platform, WheelArtifact] = {}
    for artifact in sorted(artifacts):
        existing = by_platform.get(artifact.platform)
        if existing is None:
            by_platform[artifact.platform] = artifact
            continue
        if existing.filename == artifact.filename and existing.sha256 == artifact.sha256:
            continue
        held = Candidate(existing.filename, existing.locator)
        kept, discarded = choose_candidate(held, Candidate(artifact.filename, artifact.locator))
        logging.warning(f"dropping duplicate {artifact.platform} wheel {discarded.filename}")
        warnings.append(
            AmbiguityWarning(
                f"two {artifact.platform} wheels for {name}: "
                f"keeping {kept.filename} instead of {discarded.filename}",
                kind=AmbiguityWarning.DUPLICATE_CANDIDATE,
                package=name,
                kept=kept.locator,
                discarded=discarded.locator,
            )
        )
        if kept != held:
            by_platform[artifact.platform] = artifact
    return tuple(sorted(by_platform.values()))


def aggregate(
    artifacts_by_package: Mapping[str, Iterable[WheelArtifact]],
    warnings: list[AmbiguityWarning] | None = None,
) -> list[PackageDependency]:
    """
    Group reconciled wheels into one PackageDependency per package, sorted by
    library name.

    Duplicate platform files dropped along the way are appended to
    ``warnings`` when a list is given.
    """
    sink: list[AmbiguityWarning] = warnings if warnings is not None else []
    grouped: dict[str, tuple[str, list[WheelArtifact]]] = {}
    for name in sorted(artifacts_by_package):
        key = normalize(name)
        _, bucket = grouped.setdefault(key, (name, []))
        bucket.extend(artifacts_by_package[name])

    return [
        PackageDependency(name=name, artifacts=_merge(name, artifacts, sink))
        for _, (name, artifacts) in sorted(grouped.items())
        if artifacts
    ]


def installed_set(dependencies: Iterable[PackageDependency]) -> InstalledPackageSet:
    return InstalledPackageSet.of(d.name for d in dependencies)


@dataclass(slots=True)
class DependencyAggregator:
    """
    Accumulates reconciled wheels per package during a run. ``warnings`` holds
    the findings of the most recent ``aggregate`` call.
    """

    _artifacts: dict[str, list[WheelArtifact]] = field(default_factory=dict)
    warnings: list[AmbiguityWarning] = field(default_factory=list)

    def add(self, package: str, artifacts: Iterable[WheelArtifact]) -> None:
        self._artifacts.setdefault(package, []).extend(artifacts)

    def aggregate(self) -> list[PackageDependency]:
        self.warnings = []
        return aggregate(self._artifacts, self.warnings)

    def installed_set(self) -> InstalledPackageSet:
        return installed_set(aggregate(self._artifacts))

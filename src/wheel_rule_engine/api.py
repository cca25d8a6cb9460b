from __future__ import annotations

import logging
import os
import stat
import tempfile
from dataclasses import dataclass
from pathlib import Path

from wheel_rule_engine.aggregate import DependencyAggregator, installed_set
from wheel_rule_engine.config import GeneratorConfig
from wheel_rule_engine.internal.workspace import ScratchWorkspace
from wheel_rule_engine.model.artifacts import PackageDependency
from wheel_rule_engine.model.errors import AmbiguityWarning, ConfigError
from wheel_rule_engine.reconcile import PlatformReconciler
from wheel_rule_engine.records import WheelRecordBuilder
from wheel_rule_engine.services import GeneratorServices, build_services
from wheel_rule_engine.vendoring import prune_unused_wheels


@dataclass(frozen=True, slots=True)
class GenerationReport:
    output_path: Path
    dependencies: tuple[PackageDependency, ...]
    warnings: tuple[AmbiguityWarning, ...] = ()
    pruned: tuple[Path, ...] = ()


def write_atomically(path: Path, text: str) -> Path:
    """
    Replace ``path`` with ``text`` in one step.

    The content goes to a temporary file in the same directory first, so a
    failure never leaves a partial file behind and the previous output stays
    intact. An existing file keeps its permission bits; a new one gets the
    usual 0644 less the process umask.
    """
    if path.exists():
        mode = stat.S_IMODE(path.stat().st_mode)
    else:
        umask = os.umask(0)
        os.umask(umask)
        mode = 0o644 & ~umask
    tmp = tempfile.NamedTemporaryFile(
        "w", encoding="utf-8", dir=path.parent, prefix=f".{path.name}.", delete=False
    )
    tmp_path = Path(tmp.name)
    try:
        with tmp:
            tmp.write(text)
        os.chmod(tmp_path, mode)
        os.replace(tmp_path, path)
    finally:
        if tmp_path.exists():
            tmp_path.unlink()
    return path


def generate_dependencies(
    config: GeneratorConfig,
    services: GeneratorServices,
    scratch: ScratchWorkspace,
) -> tuple[list[PackageDependency], list[AmbiguityWarning]]:
    """
    Resolve, reconcile and inspect every wheel.

    Any collaborator failure propagates: there is no partial result.
    """
    if config.requirements is None:
        raise ConfigError("a requirements file is required")
    links = services.resolver.resolve(config.requirements, scratch.resolved_dir)

    logging.info("Processing downloaded wheels...")
    builder = WheelRecordBuilder(inspector=services.inspector, classifier=services.classifier)
    reconciler = PlatformReconciler(
        classifier=services.classifier,
        fetcher=services.fetcher,
        vendoring=services.vendoring,
        scratch_dir=scratch.downloads_dir,
        max_workers=config.max_download_workers,
    )
    aggregator = DependencyAggregator()
    warnings: list[AmbiguityWarning] = []

    for wheel_path in scratch.resolved_wheels():
        discovered = services.vendoring.place(
            wheel_path.name, wheel_path, links.get(wheel_path.name)
        )
        reconciliation = reconciler.reconcile(discovered, links)
        warnings.extend(reconciliation.warnings)
        aggregator.add(
            reconciliation.package,
            [builder.build_from_source(s) for s in reconciliation.sources],
        )
        logging.debug(
            f"{reconciliation.package}: {[s.filename for s in reconciliation.sources]}"
        )

    dependencies = aggregator.aggregate()
    warnings.extend(aggregator.warnings)
    return dependencies, warnings


# :: FeatureFlow | type=feature_start | name=rule_generation
def generate(
    config: GeneratorConfig,
    *,
    command_line: str = "",
    services: GeneratorServices | None = None,
) -> GenerationReport:
    """
    Run the whole pipeline and write the rules file.

    The output file is only replaced once generation has fully succeeded.
    """
    config.validate()
    services = services if services is not None else build_services(config)

    with ScratchWorkspace() as scratch:
        dependencies, warnings = generate_dependencies(config, services, scratch)
        text = services.emitter.emit(dependencies, installed_set(dependencies), command_line)
        output_path = write_atomically(config.output_path, text)

    pruned: list[Path] = []
    wheel_dir = config.full_wheel_dir
    if config.delete_unused_wheels and wheel_dir is not None:
        keep = [
            a.local_path
            for d in dependencies
            for a in d.artifacts
            if a.local_path is not None
        ]
        pruned = prune_unused_wheels(wheel_dir, keep)

    logging.info("Done")
    return GenerationReport(
        output_path=output_path,
        dependencies=tuple(dependencies),
        warnings=tuple(warnings),
        pruned=tuple(pruned),
    )

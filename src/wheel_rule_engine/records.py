from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from wheel_rule_engine.internal.builtin_strategies import sha256_file
from wheel_rule_engine.internal.inspector import WheelMetadata
from wheel_rule_engine.model.artifacts import StorageMode, WheelArtifact, WheelSource
from wheel_rule_engine.model.platforms import PlatformClassifier


class MetadataInspector(Protocol):
    def inspect(self, wheel_path: Path) -> WheelMetadata: ...


@dataclass(slots=True)
class WheelRecordBuilder:
    """
    Builds WheelArtifacts from wheel files on disk.

    The digest is always computed from the bytes at ``file_path``; nothing
    supplied by callers is trusted. Inspector results are cached by digest so
    the (expensive) inspection runs at most once per distinct wheel in a run.
    """

    inspector: MetadataInspector
    classifier: PlatformClassifier
    _metadata_by_digest: dict[str, WheelMetadata] = field(default_factory=dict)

    def build_record(
        self,
        file_path: Path,
        origin_locator: str,
        storage: StorageMode = StorageMode.REMOTE_REFERENCE,
    ) -> WheelArtifact:
        digest = sha256_file(file_path)
        metadata = self._metadata(digest, file_path)
        return WheelArtifact(
            filename=file_path.name,
            locator=origin_locator,
            sha256=digest,
            platform=self.classifier.classify(file_path.name),
            requires=metadata.requires,
            extras=metadata.extras,
            storage=storage,
            local_path=file_path if storage is StorageMode.LOCALLY_VENDORED else None,
        )

    def build_from_source(self, source: WheelSource) -> WheelArtifact:
        return self.build_record(source.path, source.locator, source.storage)

    def _metadata(self, digest: str, file_path: Path) -> WheelMetadata:
        cached = self._metadata_by_digest.get(digest)
        if cached is not None:
            logging.debug(f"reusing metadata for {file_path.name} ({digest[:12]})")
            return cached
        metadata = self.inspector.inspect(file_path)
        self._metadata_by_digest[digest] = metadata
        return metadata

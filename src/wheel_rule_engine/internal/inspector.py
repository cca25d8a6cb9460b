from __future__ import annotations

import json
import logging
import subprocess
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from packaging.requirements import InvalidRequirement

from wheel_rule_engine.model.errors import InspectorProcessError, MetadataParseError
from wheel_rule_engine.model.names import requirement_entries


@dataclass(frozen=True, slots=True)
class WheelMetadata:
    """
    Dependency metadata of one wheel as reported by the inspection tool.
    """

    requires: tuple[str, ...] = ()
    extras: Mapping[str, tuple[str, ...]] = field(default_factory=dict)


def parse_tool_output(text: str, *, wheel_path: Path) -> WheelMetadata:
    """
    Parse ``{"requires": [...], "extras": {name: [...]}}``.

    Lists are sorted here so nothing downstream depends on the tool's order.
    """
    try:
        payload: Any = json.loads(text)
    except json.JSONDecodeError as e:
        raise MetadataParseError(
            f"failed to parse wheel tool output for {wheel_path}: {e}",
            wheel_path=wheel_path,
        ) from e

    if not isinstance(payload, Mapping):
        raise MetadataParseError(
            f"wheel tool output for {wheel_path} is not an object", wheel_path=wheel_path
        )

    requires = payload.get("requires")
    extras = payload.get("extras") or {}
    if not _is_str_list(requires):
        raise MetadataParseError(
            f"wheel tool output for {wheel_path}: 'requires' must be a list of strings",
            wheel_path=wheel_path,
        )
    if not isinstance(extras, Mapping) or not all(
        isinstance(k, str) and _is_str_list(v) for k, v in extras.items()
    ):
        raise MetadataParseError(
            f"wheel tool output for {wheel_path}: 'extras' must map names to lists of strings",
            wheel_path=wheel_path,
        )

    try:
        return WheelMetadata(
            requires=_entries(requires),
            extras={name: _entries(extras[name]) for name in sorted(extras)},
        )
    except InvalidRequirement as e:
        raise MetadataParseError(
            f"wheel tool output for {wheel_path}: invalid requirement: {e}",
            wheel_path=wheel_path,
        ) from e


def _entries(specifiers: list[str]) -> tuple[str, ...]:
    # tolerates full PEP 508 specifiers as well as bare names
    return tuple(sorted({e for s in specifiers for e in requirement_entries(s)}))


def _is_str_list(value: Any) -> bool:
    return isinstance(value, list) and all(isinstance(v, str) for v in value)


@dataclass(frozen=True, slots=True)
class WheelMetadataInspector:
    """
    Metadata-inspection collaborator: runs the wheel tool on one wheel.
    """

    python_path: str
    wheel_tool_path: Path
    verbose: bool = False

    def inspect(self, wheel_path: Path) -> WheelMetadata:
        cmd = [self.python_path, str(self.wheel_tool_path), str(wheel_path)]
        start = time.monotonic()
        try:
            completed = subprocess.run(cmd, stdout=subprocess.PIPE, text=True)
        except OSError as e:
            raise InspectorProcessError(
                f"failed to run wheel tool on {wheel_path}: {e}",
                wheel_path=wheel_path,
                command=cmd,
            ) from e

        if completed.returncode != 0:
            raise InspectorProcessError(
                f"wheel tool failed on wheel {wheel_path} with status {completed.returncode}",
                wheel_path=wheel_path,
                command=cmd,
                returncode=completed.returncode,
                output=completed.stdout,
            )

        if self.verbose:
            logging.debug(
                f"wheel tool {wheel_path.name} took {time.monotonic() - start:.3f}s"
            )
        return parse_tool_output(completed.stdout, wheel_path=wheel_path)

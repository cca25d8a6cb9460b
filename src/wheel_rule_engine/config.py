from __future__ import annotations

import sys
from collections.abc import Mapping
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from pathlib import Path
from typing import Any

from typing_extensions import Self

from wheel_rule_engine.internal.util.multiformat import MultiformatModelMixin
from wheel_rule_engine.model.errors import ConfigError
from wheel_rule_engine.model.platforms import DEFAULT_PLATFORM_DEFS, PlatformDef

BUNDLED_WHEEL_TOOL = Path(__file__).with_name("wheeltool.py")


class RuleFlavor(str, Enum):
    PYZ = "pyz"
    PEX = "pex"


@dataclass(frozen=True, slots=True)
class TargetShape:
    """
    The library rule a flavor generates, the attribute that receives wheel
    references, and the .bzl file that defines the rule.
    """

    library_rule: str
    wheel_attribute: str
    bzl_path: str


TARGET_SHAPES: Mapping[RuleFlavor, TargetShape] = {
    RuleFlavor.PYZ: TargetShape(
        "pyz_library", "wheels", "//rules_python_zip:rules_python_zip.bzl"
    ),
    RuleFlavor.PEX: TargetShape(
        "pex_library", "eggs", "//bazel_rules_pex/pex:pex_rules.bzl"
    ),
}


@dataclass(kw_only=True, frozen=True, slots=True)
class GeneratorConfig(MultiformatModelMixin):
    """
    Settings for one generator run.

    Attributes:
        requirements (Path | None): requirements file handed to the resolver.
        output_dir (Path | None): directory receiving the generated file; the
            wheel directory is relative to it.
        output_file_name (str): name of the generated .bzl file.
        wheel_dir (str): local wheel storage directory relative to
            ``output_dir``. Empty disables vendoring.
        prefer_remote (bool): reference wheels by their remote URL when one is
            known instead of vendoring them.
        rules_workspace (str): workspace holding the library rule definitions.
        rule_flavor (RuleFlavor): which library rule to generate.
        workspace_prefix (str): prefix for generated wheel target names.
        verbose (bool): log resolver output and per-wheel timings.
        python_path (str): interpreter running the resolver and the inspector.
        wheel_tool_path (Path): metadata inspection script.
        delete_unused_wheels (bool): prune vendored wheels no longer referenced.
        max_download_workers (int): bound on concurrent sibling downloads.
        download_timeout_s (float): per-request download timeout.
        platforms (tuple[PlatformDef, ...]): ordered platform table.
    """

    requirements: Path | None = None
    output_dir: Path | None = None
    output_file_name: str = "pypi_rules.bzl"
    wheel_dir: str = "wheels"
    prefer_remote: bool = True
    rules_workspace: str = "@rules_pyz"
    rule_flavor: RuleFlavor = RuleFlavor.PYZ
    workspace_prefix: str = "pypi_"
    verbose: bool = False
    python_path: str = field(default=sys.executable or "python")
    wheel_tool_path: Path = BUNDLED_WHEEL_TOOL
    delete_unused_wheels: bool = False
    max_download_workers: int = 4
    download_timeout_s: float = 120.0
    platforms: tuple[PlatformDef, ...] = DEFAULT_PLATFORM_DEFS

    # --------------------------------------------------------------------- #
    # Derived
    # --------------------------------------------------------------------- #

    @property
    def target_shape(self) -> TargetShape:
        return TARGET_SHAPES[self.rule_flavor]

    @property
    def output_path(self) -> Path:
        if self.output_dir is None:
            raise ConfigError("output_dir is required")
        return self.output_dir / self.output_file_name

    @property
    def full_wheel_dir(self) -> Path | None:
        if not self.wheel_dir or self.output_dir is None:
            return None
        return self.output_dir / self.wheel_dir

    @property
    def prefers_vendoring(self) -> bool:
        return not self.prefer_remote

    def with_overrides(self, **overrides: Any) -> Self:
        """
        Returns a copy with every non-None override applied.
        """
        changes = {k: v for k, v in overrides.items() if v is not None}
        try:
            return replace(self, **changes)
        except TypeError as e:
            raise ConfigError(str(e)) from e

    # --------------------------------------------------------------------- #
    # Validation
    # --------------------------------------------------------------------- #

    def validate(self) -> None:
        if self.requirements is None or self.output_dir is None:
            raise ConfigError("requirements and output_dir are required")
        if not self.requirements.is_file():
            raise ConfigError(f"requirements file '{self.requirements}' does not exist")
        if not self.output_dir.is_dir():
            raise ConfigError(f"output_dir '{self.output_dir}' is not a directory")
        if not isinstance(self.rule_flavor, RuleFlavor):
            raise ConfigError(f"rule_flavor must be one of {[f.value for f in RuleFlavor]}")
        if self.max_download_workers < 1:
            raise ConfigError("max_download_workers must be at least 1")
        if not self.platforms:
            raise ConfigError("at least one platform must be configured")
        names = [p.name for p in self.platforms]
        if len(set(names)) != len(names) or not all(names):
            raise ConfigError(f"platform names must be unique and non-empty: {names}")

        wheel_dir = self.full_wheel_dir
        if wheel_dir is not None:
            if not wheel_dir.exists():
                raise ConfigError(f"wheel_dir '{wheel_dir}' does not exist")
            if not wheel_dir.is_dir():
                raise ConfigError(f"wheel_dir '{wheel_dir}' is not a directory")

    # --------------------------------------------------------------------- #
    # Serialization
    # --------------------------------------------------------------------- #

    # :: MechanicalOperation | type=serialization
    def to_mapping(self, *args: Any, **kwargs: Any) -> dict[str, Any]:
        return {
            "requirements": self.requirements,
            "output_dir": self.output_dir,
            "output_file_name": self.output_file_name,
            "wheel_dir": self.wheel_dir,
            "prefer_remote": self.prefer_remote,
            "rules_workspace": self.rules_workspace,
            "rule_flavor": self.rule_flavor.value,
            "workspace_prefix": self.workspace_prefix,
            "verbose": self.verbose,
            "python_path": self.python_path,
            "wheel_tool_path": self.wheel_tool_path,
            "delete_unused_wheels": self.delete_unused_wheels,
            "max_download_workers": self.max_download_workers,
            "download_timeout_s": self.download_timeout_s,
            "platforms": [p.to_mapping() for p in self.platforms],
        }

    # :: MechanicalOperation | type=deserialization
    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any], **_: Any) -> Self:
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(mapping) - known)
        if unknown:
            raise ConfigError(f"unknown configuration keys: {', '.join(unknown)}")

        values: dict[str, Any] = dict(mapping)
        try:
            for key in ("requirements", "output_dir", "wheel_tool_path"):
                if values.get(key) is not None:
                    values[key] = Path(values[key])
            if "rule_flavor" in values:
                values["rule_flavor"] = RuleFlavor(values["rule_flavor"])
            if "platforms" in values:
                values["platforms"] = tuple(
                    PlatformDef.from_mapping(p) for p in values["platforms"]
                )
        except (KeyError, TypeError, ValueError) as e:
            raise ConfigError(f"invalid configuration: {e}") from e
        return cls(**values)

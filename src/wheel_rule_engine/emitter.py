from __future__ import annotations

import json
import posixpath
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Final

from wheel_rule_engine.config import TargetShape
from wheel_rule_engine.model.artifacts import (
    InstalledPackageSet,
    PackageDependency,
    WheelArtifact,
)
from wheel_rule_engine.model.names import normalize

HEADER_TEMPLATE: Final[str] = """\
# AUTO GENERATED. DO NOT EDIT DIRECTLY.
#
# Command line:
#   wheel-rules \\
#     {command_line}

load({bzl_label}, {library_rule})
"""

DEFAULT_CONDITION: Final[str] = "//conditions:default"

# packages that cannot run correctly from inside a zip
UNZIP_UNSAFE_PACKAGES: Final[frozenset[str]] = frozenset(
    {
        "certifi",  # returns paths to the contained .pem files
    }
)


def _q(value: str) -> str:
    return json.dumps(value, ensure_ascii=False)


def _sorted_labels(names: Iterable[str]) -> list[str]:
    return sorted({normalize(n) for n in names})


@dataclass(frozen=True, slots=True)
class RuleEmitter:
    """
    Serializes dependencies into a .bzl file.

    Every loop runs over sorted input (packages by library name, artifacts by
    platform then file name, extras and deps by name), so identical inputs give
    byte-identical output.
    """

    shape: TargetShape
    rules_workspace: str = "@rules_pyz"
    workspace_prefix: str = "pypi_"
    wheel_dir: str = "wheels"

    # --------------------------------------------------------------------- #
    # Naming
    # --------------------------------------------------------------------- #

    def artifact_target_name(self, artifact: WheelArtifact) -> str:
        name = self.workspace_prefix + normalize(artifact.distribution)
        if not artifact.platform.is_universal:
            name += "__" + artifact.platform.name
        return name

    def artifact_reference(self, artifact: WheelArtifact) -> str:
        name = self.artifact_target_name(artifact)
        if artifact.is_vendored:
            # filegroup targets for locally stored wheels
            return f":{name}"
        return f"@{name}//file"

    def platform_condition(self, artifact: WheelArtifact) -> str:
        if artifact.platform.is_universal:
            return DEFAULT_CONDITION
        return f"{self.rules_workspace}//rules_python_zip:{artifact.platform.name}"

    # --------------------------------------------------------------------- #
    # Targets
    # --------------------------------------------------------------------- #

    def library_target(
        self, dependency: PackageDependency, installed: InstalledPackageSet
    ) -> str:
        lib_name = dependency.library_name
        canonical = dependency.canonical
        out: list[str] = [
            f"    {self.shape.library_rule}(",
            f"        name={_q(lib_name)},",
        ]

        if not dependency.is_multi_platform:
            out.append(
                f"        {self.shape.wheel_attribute}=[{_q(self.artifact_reference(canonical))}],"
            )
        else:
            out.append(f"        {self.shape.wheel_attribute}=select({{")
            out.extend(self._select_branches(dependency.artifacts))
            out.append("        }),")

        if lib_name in UNZIP_UNSAFE_PACKAGES:
            out.append("        zip_safe=False,")

        out.extend(self._deps_block(_sorted_labels(canonical.requires)))
        out.extend(self._footer())

        # only emit an extra when every package it needs was resolved
        for extra_name, extra_deps in canonical.extras.items():
            if not installed.covers(extra_deps):
                continue
            out.append(f"    {self.shape.library_rule}(")
            out.append(f"        name={_q(normalize(f'{dependency.name}[{extra_name}]'))},")
            out.extend(self._deps_block(_sorted_labels([*extra_deps, lib_name])))
            out.extend(self._footer())

        return "\n".join(out) + "\n"

    def _select_branches(self, artifacts: Sequence[WheelArtifact]) -> list[str]:
        lines: list[str] = []
        default: WheelArtifact | None = None
        for artifact in artifacts:
            if artifact.platform.is_universal:
                default = artifact
                continue
            lines.append(
                f"                {_q(self.platform_condition(artifact))}: "
                f"[{_q(self.artifact_reference(artifact))}],"
            )
        default = default or artifacts[0]
        lines.append(
            f"                {_q(DEFAULT_CONDITION)}: [{_q(self.artifact_reference(default))}],"
        )
        return lines

    @staticmethod
    def _deps_block(labels: Sequence[str]) -> list[str]:
        return ["        deps=[", *(f"            {_q(':' + d)}," for d in labels), "        ],"]

    @staticmethod
    def _footer() -> list[str]:
        return [
            '        licenses=["notice"],',
            '        visibility=["//visibility:public"],',
            "    )",
        ]

    def filegroup_rule(self, artifact: WheelArtifact) -> str:
        if artifact.local_path is None:
            raise ValueError(f"{artifact.filename}: vendored artifact has no local path")
        src = posixpath.join(self.wheel_dir, artifact.local_path.name)
        return (
            "    native.filegroup(\n"
            f"        name={_q(self.artifact_target_name(artifact))},\n"
            f"        srcs=[{_q(src)}],\n"
            '        licenses=["notice"],\n'
            "    )\n"
        )

    def http_file_rule(self, artifact: WheelArtifact) -> str:
        name = _q(self.artifact_target_name(artifact))
        return (
            f"    if not {name} in native.existing_rules():\n"
            "        native.http_file(\n"
            f"            name={name},\n"
            f"            url={_q(artifact.locator)},\n"
            f"            sha256={_q(artifact.sha256)},\n"
            "        )\n"
        )

    # --------------------------------------------------------------------- #
    # File
    # --------------------------------------------------------------------- #

    def header(self, command_line: str) -> str:
        return HEADER_TEMPLATE.format(
            command_line=command_line,
            bzl_label=_q(self.rules_workspace + self.shape.bzl_path),
            library_rule=_q(self.shape.library_rule),
        )

    def emit(
        self,
        dependencies: Iterable[PackageDependency],
        installed: InstalledPackageSet,
        command_line: str = "",
    ) -> str:
        deps = sorted(dependencies, key=lambda d: d.library_name)
        artifacts = [a for d in deps for a in d.artifacts]

        parts: list[str] = [self.header(command_line), "\ndef pypi_libraries():\n"]
        wrote_library = False
        for dependency in deps:
            parts.append(self.library_target(dependency, installed))
            wrote_library = True

        declared: set[str] = set()
        for artifact in artifacts:
            name = self.artifact_target_name(artifact)
            if artifact.is_vendored and name not in declared:
                declared.add(name)
                parts.append(self.filegroup_rule(artifact))
                wrote_library = True
        if not wrote_library:
            parts.append("    pass\n")

        parts.append("\ndef pypi_repositories():\n")
        wrote_repository = False
        for artifact in artifacts:
            name = self.artifact_target_name(artifact)
            if not artifact.is_vendored and name not in declared:
                declared.add(name)
                parts.append(self.http_file_rule(artifact))
                wrote_repository = True
        if not wrote_repository:
            parts.append("    pass\n")

        return "".join(parts)

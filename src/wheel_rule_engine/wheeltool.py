"""Prints the dependencies declared by a wheel as JSON.

Usage: wheeltool.py <path to .whl>

Output: {"requires": [...], "extras": {"<extra>": [...]}}

Requirements are reduced to ``name`` or ``name[extra]`` entries. Markers that
do not mention ``extra`` are evaluated against the running interpreter, so run
this with the interpreter the wheels were resolved for.
"""
from __future__ import annotations

import json
import re
import sys
import zipfile
from email.parser import Parser
from pathlib import Path

from packaging.requirements import InvalidRequirement, Requirement

_EXTRA_MARKER_RE = re.compile(r"\bextra\b")


def find_metadata_member(zf: zipfile.ZipFile) -> str:
    """
    Find a member path that looks like "<something>.dist-info/METADATA".
    """
    candidates = [n for n in zf.namelist() if n.endswith(".dist-info/METADATA")]
    if not candidates:
        raise FileNotFoundError("Wheel does not contain any *.dist-info/METADATA entry")
    # Deterministic pick.
    candidates.sort()
    return candidates[0]


def _entries(req: Requirement) -> list[str]:
    if not req.extras:
        return [req.name]
    return [f"{req.name}[{extra}]" for extra in sorted(req.extras)]


def wheel_dependencies(wheel_path: Path) -> dict[str, object]:
    with zipfile.ZipFile(wheel_path) as zf:
        metadata_text = zf.read(find_metadata_member(zf)).decode("utf-8")

    message = Parser().parsestr(metadata_text)
    provides_extras = sorted(set(message.get_all("Provides-Extra") or []))

    requires: set[str] = set()
    extras: dict[str, set[str]] = {name: set() for name in provides_extras}
    for raw in message.get_all("Requires-Dist") or []:
        req = Requirement(raw)
        if req.marker is None:
            requires.update(_entries(req))
        elif _EXTRA_MARKER_RE.search(str(req.marker)):
            for extra in provides_extras:
                if req.marker.evaluate({"extra": extra}):
                    extras[extra].update(_entries(req))
        elif req.marker.evaluate():
            requires.update(_entries(req))

    return {
        "requires": sorted(requires),
        "extras": {name: sorted(deps) for name, deps in sorted(extras.items())},
    }


def main(argv: list[str]) -> int:
    if len(argv) != 2:
        print(f"usage: {Path(argv[0]).name} <wheel>", file=sys.stderr)
        return 2
    try:
        result = wheel_dependencies(Path(argv[1]))
    except (OSError, zipfile.BadZipFile, InvalidRequirement, UnicodeDecodeError) as e:
        print(f"{argv[1]}: {e}", file=sys.stderr)
        return 1
    json.dump(result, sys.stdout, sort_keys=True)
    sys.stdout.write("\n")
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv))

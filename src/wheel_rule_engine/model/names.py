from __future__ import annotations

from packaging.requirements import Requirement


def normalize(name: str) -> str:
    """
    Normalize a package name (optionally carrying an extras suffix) into a
    build target name.

    Lower-cases, maps ``-`` and ``.`` to ``_`` and rewrites ``pkg[extra]`` as
    ``pkg__extra``. Idempotent.
    """
    name = name.lower()
    name = name.replace("-", "_").replace(".", "_")
    return name.replace("[", "__").replace("]", "")


def base_name(name: str) -> str:
    """
    Strip an extras suffix: ``pkg[extra]`` -> ``pkg``.
    """
    extra_start = name.find("[")
    if extra_start >= 0:
        return name[:extra_start]
    return name


def installed_key(name: str) -> str:
    return normalize(base_name(name))


def wheel_file_parts(filename: str) -> tuple[str, str]:
    """
    Returns the distribution and version fields of a wheel file name.
    """
    parts = filename.split("-", 2)
    if len(parts) < 3:
        raise ValueError(f"Not a wheel file name: {filename!r}")
    return parts[0], parts[1]


def requirement_entries(specifier: str | Requirement) -> list[str]:
    """
    Reduce a PEP 508 requirement to the dependency strings recorded on a wheel:
    ``name`` without extras, or one ``name[extra]`` per requested extra.
    """
    req = specifier if isinstance(specifier, Requirement) else Requirement(specifier)
    if not req.extras:
        return [req.name]
    return [f"{req.name}[{extra}]" for extra in sorted(req.extras)]

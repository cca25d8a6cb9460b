from __future__ import annotations

import json
from collections.abc import Mapping
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import Any

from typing_extensions import Self

from wheel_rule_engine.internal.util.toml import (
    dump_toml_to_str,
    load_toml_file,
    load_toml_text,
)


def _normalize(value: Any) -> Any:
    """
    Reduce a value to plain JSON/TOML-compatible data.

    Sets are sorted so serialized output is stable across runs.
    """
    match value:
        case Path():
            return value.as_posix()
        case Enum():
            return value.value
        case Mapping():
            return {str(k): _normalize(v) for k, v in sorted(value.items())}
        case set() | frozenset():
            return sorted(_normalize(v) for v in value)
        case list() | tuple():
            return [_normalize(v) for v in value]
        case datetime() | date():
            return value.isoformat()
        case _:
            return value


def _drop_none(value: Any) -> Any:
    # TOML has no null
    if isinstance(value, Mapping):
        return {k: _drop_none(v) for k, v in value.items() if v is not None}
    if isinstance(value, list):
        return [_drop_none(v) for v in value]
    return value


class MultiformatSerializableMixin:
    __slots__ = ()

    def to_mapping(self, *args: Any, **kwargs: Any) -> Mapping[str, Any]:
        raise NotImplementedError

    def to_json(self, *, indent: int | None = 2) -> str:
        return json.dumps(_normalize(self.to_mapping()), indent=indent, sort_keys=True)

    def to_toml(self) -> str:
        return dump_toml_to_str(_drop_none(_normalize(self.to_mapping())))

    def serialize(self, fmt: str) -> str:
        match fmt:
            case "json":
                return self.to_json()
            case "toml":
                return self.to_toml()
            case _:
                raise ValueError(f"Unrecognized serialization format: {fmt!r}")


class MultiformatDeserializableMixin:
    __slots__ = ()

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any], **kwargs: Any) -> Self:
        raise NotImplementedError

    @classmethod
    def deserialize(cls, text: str, *, fmt: str, **kwargs: Any) -> Self:
        raw = cls._parse_text(text, fmt)
        mapping = cls._coerce_root_mapping(raw)
        return cls.from_mapping(mapping, **kwargs)

    @classmethod
    def from_json(cls, text: str, **kwargs: Any) -> Self:
        return cls.deserialize(text, fmt="json", **kwargs)

    @classmethod
    def from_toml(cls, text: str, **kwargs: Any) -> Self:
        return cls.deserialize(text, fmt="toml", **kwargs)

    @classmethod
    def from_file(cls, path: str | Path, *, fmt: str | None = None, **kwargs: Any) -> Self:
        p = Path(path)
        fmt = fmt or cls._infer_format_from_suffix(p)
        if fmt == "toml":
            return cls.from_mapping(cls._coerce_root_mapping(load_toml_file(p)), **kwargs)
        return cls.deserialize(p.read_text(encoding="utf-8"), fmt=fmt, **kwargs)

    @staticmethod
    def _infer_format_from_suffix(path: Path) -> str:
        match path.suffix.lower():
            case ".json":
                return "json"
            case ".toml":
                return "toml"
            case _:
                raise ValueError(f"Cannot infer format from file suffix: {path.name!r}")

    @staticmethod
    def _parse_text(text: str, fmt: str) -> Any:
        match fmt:
            case "json":
                return json.loads(text)
            case "toml":
                return load_toml_text(text)
            case _:
                raise ValueError(f"Unrecognized serialization format: {fmt!r}")

    @staticmethod
    def _coerce_root_mapping(raw: Any) -> Mapping[str, Any]:
        if isinstance(raw, Mapping):
            return raw
        raise TypeError(f"Expected a mapping at the document root, got {type(raw).__name__}")


class MultiformatModelMixin(MultiformatSerializableMixin, MultiformatDeserializableMixin):
    __slots__ = ()

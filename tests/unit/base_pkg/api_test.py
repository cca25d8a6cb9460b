from __future__ import annotations

# ==============================================================================
# BRANCH LEDGER: api.py
# ==============================================================================
#
# ## write_atomically(path, text)                        (Function ID: F001)
# F001B0001: success -> path replaced, no temporary file left
# F001B0002: failure before replace -> previous content intact, temporary removed
# F001B0003: new file -> mode 0644 less the umask
# F001B0004: existing file -> its mode is kept
#
# ## generate(config, command_line, services)           (Function ID: F002)
# F002B0001: invalid config -> raise ConfigError before any collaborator runs
# F002B0002: remote mode -> http_file rules, sibling downloaded
# F002B0003: vendoring mode -> wheels moved into wheel_dir, filegroups emitted
# F002B0004: wheel without a link -> vendored even in remote mode
# F002B0005: collaborator failure -> propagates, previous output untouched
# F002B0006: delete_unused_wheels -> stale wheels pruned after writing
# F002B0007: two files left on one platform -> duplicate reported in warnings
#
# ## generate_dependencies(config, services, scratch)  (Function ID: F003)
# F003B0001: no requirements file -> raise ConfigError
# ==============================================================================

import os
import stat
from dataclasses import replace
from pathlib import Path

import pytest

from wheel_rule_engine import api
from wheel_rule_engine.config import GeneratorConfig
from wheel_rule_engine.internal.inspector import WheelMetadata
from wheel_rule_engine.internal.workspace import ScratchWorkspace
from wheel_rule_engine.model.errors import AmbiguityWarning, ConfigError, MetadataParseError
from wheel_rule_engine.services import GeneratorServices, build_services
from unit.helpers.models_helper import (
    BAZ_LINUX_WHEEL,
    BAZ_OSX_WHEEL,
    UNIVERSAL_WHEEL,
    FakeFetcher,
    FakeInspector,
    FakeResolver,
    url_for,
)

LOCAL_WHEEL = "local_pkg-0.1-py3-none-any.whl"


def _config(tmp_path: Path, **changes: object) -> GeneratorConfig:
    requirements = tmp_path / "requirements.txt"
    requirements.write_text("Foo-Bar\n", encoding="utf-8")
    output_dir = tmp_path / "out"
    (output_dir / "wheels").mkdir(parents=True, exist_ok=True)
    config = GeneratorConfig(requirements=requirements, output_dir=output_dir)
    return replace(config, **changes)  # type: ignore[arg-type]


def _resolver(linux_bytes: bytes = b"linux-1", *, reverse: bool = False) -> FakeResolver:
    wheels = {BAZ_LINUX_WHEEL: linux_bytes, UNIVERSAL_WHEEL: b"foo-bar"}
    links = {name: url_for(name) for name in (BAZ_LINUX_WHEEL, BAZ_OSX_WHEEL, UNIVERSAL_WHEEL)}
    if reverse:
        wheels = dict(reversed(list(wheels.items())))
        links = dict(reversed(list(links.items())))
    return FakeResolver(wheels=wheels, links=links)


def _services(
    config: GeneratorConfig,
    resolver: FakeResolver,
    *,
    fetcher: FakeFetcher | None = None,
    inspector: FakeInspector | None = None,
) -> GeneratorServices:
    return replace(
        build_services(config),
        resolver=resolver,
        fetcher=fetcher if fetcher is not None else FakeFetcher(),
        inspector=inspector
        if inspector is not None
        else FakeInspector({UNIVERSAL_WHEEL: WheelMetadata(requires=("baz",))}),
    )


def test_write_atomically(tmp_path: Path) -> None:
    # Covers: F001B0001
    target = tmp_path / "rules.bzl"
    target.write_text("old", encoding="utf-8")
    api.write_atomically(target, "new")
    assert target.read_text(encoding="utf-8") == "new"
    assert sorted(p.name for p in tmp_path.iterdir()) == ["rules.bzl"]


def test_write_atomically_failure_keeps_previous(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    # Covers: F001B0002
    target = tmp_path / "rules.bzl"
    target.write_text("old", encoding="utf-8")

    def fail_replace(src: object, dst: object) -> None:
        raise PermissionError("read-only")

    monkeypatch.setattr(os, "replace", fail_replace)
    with pytest.raises(PermissionError):
        api.write_atomically(target, "new")
    assert target.read_text(encoding="utf-8") == "old"
    assert sorted(p.name for p in tmp_path.iterdir()) == ["rules.bzl"]


def test_write_atomically_new_file_mode(tmp_path: Path) -> None:
    # Covers: F001B0003
    previous = os.umask(0o022)
    try:
        target = api.write_atomically(tmp_path / "rules.bzl", "new")
    finally:
        os.umask(previous)
    assert stat.S_IMODE(target.stat().st_mode) == 0o644


def test_write_atomically_keeps_existing_mode(tmp_path: Path) -> None:
    # Covers: F001B0004
    target = tmp_path / "rules.bzl"
    target.write_text("old", encoding="utf-8")
    target.chmod(0o664)
    api.write_atomically(target, "new")
    assert stat.S_IMODE(target.stat().st_mode) == 0o664


def test_invalid_config_fails_before_resolving(tmp_path: Path) -> None:
    # Covers: F002B0001
    config = _config(tmp_path, requirements=tmp_path / "missing.txt")
    resolver = _resolver()
    with pytest.raises(ConfigError):
        api.generate(config, services=_services(config, resolver))
    assert resolver.calls == 0
    assert not config.output_path.exists()


def test_generate_remote(tmp_path: Path) -> None:
    # Covers: F002B0002
    config = _config(tmp_path)
    fetcher = FakeFetcher()
    report = api.generate(
        config, command_line="--requirements r.txt", services=_services(config, _resolver(), fetcher=fetcher)
    )

    text = config.output_path.read_text(encoding="utf-8")
    assert report.output_path == config.output_path
    assert [d.library_name for d in report.dependencies] == ["baz", "foo_bar"]
    assert report.warnings == ()
    assert fetcher.calls == [url_for(BAZ_OSX_WHEEL)]
    assert "#     --requirements r.txt\n" in text
    for name in ("pypi_baz__osx", "pypi_baz__linux", "pypi_foo_bar"):
        assert f'    if not "{name}" in native.existing_rules():' in text
    assert '            ":baz",' in text
    assert "native.filegroup" not in text
    assert list((config.output_dir / "wheels").iterdir()) == []  # type: ignore[operator]


def test_generate_vendored_is_idempotent(tmp_path: Path) -> None:
    # Covers: F002B0003
    config = _config(tmp_path, prefer_remote=False)
    first_fetcher = FakeFetcher()
    api.generate(config, services=_services(config, _resolver(b"linux-1"), fetcher=first_fetcher))
    first = config.output_path.read_text(encoding="utf-8")

    # the resolver rebuilds the wheel with different bytes; the vendored copy wins
    second_fetcher = FakeFetcher()
    api.generate(config, services=_services(config, _resolver(b"linux-2"), fetcher=second_fetcher))
    second = config.output_path.read_text(encoding="utf-8")

    wheel_dir = config.output_dir / "wheels"  # type: ignore[operator]
    assert first == second
    assert first_fetcher.calls == [url_for(BAZ_OSX_WHEEL)]
    assert second_fetcher.calls == []
    assert (wheel_dir / BAZ_LINUX_WHEEL).read_bytes() == b"linux-1"
    assert sorted(p.name for p in wheel_dir.iterdir()) == sorted(
        [BAZ_LINUX_WHEEL, BAZ_OSX_WHEEL, UNIVERSAL_WHEEL]
    )
    assert f'        srcs=["wheels/{BAZ_OSX_WHEEL}"],' in first
    assert "native.http_file" not in first


def test_generate_ignores_resolver_order(tmp_path: Path) -> None:
    outputs = []
    for reverse in (False, True):
        config = _config(tmp_path)
        api.generate(config, services=_services(config, _resolver(reverse=reverse)))
        outputs.append(config.output_path.read_text(encoding="utf-8"))
    assert outputs[0] == outputs[1]


def test_wheel_without_link_is_vendored(tmp_path: Path) -> None:
    # Covers: F002B0004
    config = _config(tmp_path)
    resolver = FakeResolver(wheels={LOCAL_WHEEL: b"built locally"}, links={})
    api.generate(config, services=_services(config, resolver))

    text = config.output_path.read_text(encoding="utf-8")
    assert '        name="pypi_local_pkg",' in text
    assert f'        srcs=["wheels/{LOCAL_WHEEL}"],' in text
    assert (config.output_dir / "wheels" / LOCAL_WHEEL).is_file()  # type: ignore[operator]


def test_failure_keeps_previous_output(tmp_path: Path) -> None:
    # Covers: F002B0005
    class _BrokenInspector(FakeInspector):
        def inspect(self, wheel_path: Path) -> WheelMetadata:
            raise MetadataParseError("garbage from wheel tool", wheel_path=wheel_path)

    config = _config(tmp_path)
    config.output_path.write_text("previous", encoding="utf-8")

    with pytest.raises(MetadataParseError):
        api.generate(config, services=_services(config, _resolver(), inspector=_BrokenInspector()))

    assert config.output_path.read_text(encoding="utf-8") == "previous"
    assert sorted(p.name for p in config.output_dir.iterdir()) == ["pypi_rules.bzl", "wheels"]  # type: ignore[union-attr]


def test_prunes_unused_wheels(tmp_path: Path) -> None:
    # Covers: F002B0006
    config = _config(tmp_path, prefer_remote=False, delete_unused_wheels=True)
    stale = config.output_dir / "wheels" / "old-0.9-py3-none-any.whl"  # type: ignore[operator]
    stale.write_bytes(b"")

    report = api.generate(config, services=_services(config, _resolver()))

    assert report.pruned == (stale,)
    assert not stale.exists()
    assert (config.output_dir / "wheels" / BAZ_OSX_WHEEL).is_file()  # type: ignore[operator]


def test_duplicate_platform_files_are_reported(tmp_path: Path) -> None:
    # Covers: F002B0007
    other_linux = "baz-2.0-cp311-cp311-manylinux_2_28_x86_64.whl"
    resolver = FakeResolver(
        wheels={BAZ_LINUX_WHEEL: b"linux-1", other_linux: b"linux-2"},
        links={name: url_for(name) for name in (BAZ_LINUX_WHEEL, other_linux, BAZ_OSX_WHEEL)},
    )
    config = _config(tmp_path)
    report = api.generate(config, services=_services(config, resolver))

    assert [a.filename for a in report.dependencies[0].artifacts] == [BAZ_OSX_WHEEL, other_linux]
    assert len(report.warnings) == 1
    warning = report.warnings[0]
    assert warning.kind == AmbiguityWarning.DUPLICATE_CANDIDATE
    assert warning.package == "baz"
    assert (warning.kept, warning.discarded) == (url_for(other_linux), url_for(BAZ_LINUX_WHEEL))


def test_dependencies_need_requirements(tmp_path: Path) -> None:
    # Covers: F003B0001
    config = _config(tmp_path, requirements=None)
    resolver = _resolver()
    with ScratchWorkspace() as scratch:
        with pytest.raises(ConfigError, match="requirements"):
            api.generate_dependencies(config, _services(config, resolver), scratch)
    assert resolver.calls == 0

from __future__ import annotations

# ==============================================================================
# BRANCH LEDGER: internal/inspector.py
# ==============================================================================
#
# ## parse_tool_output(text, wheel_path)                 (Function ID: F001)
# F001B0001: valid object -> sorted requires, sorted extras
# F001B0002: not JSON -> raise MetadataParseError
# F001B0003: root not an object -> raise MetadataParseError
# F001B0004: requires missing or not a list of strings -> raise MetadataParseError
# F001B0005: extras not a mapping of string lists -> raise MetadataParseError
# F001B0006: entry is not a valid requirement -> raise MetadataParseError
# F001B0007: extras missing or null -> empty mapping
#
# ## WheelMetadataInspector.inspect(wheel_path)         (Class ID: C001, Method ID: M001)
# C001M001B0001: tool exits 0 -> parsed metadata
# C001M001B0002: tool exits non-zero -> raise InspectorProcessError
# C001M001B0003: interpreter cannot be started -> raise InspectorProcessError
# ==============================================================================

import sys
from pathlib import Path

import pytest

from wheel_rule_engine.internal.inspector import (
    WheelMetadata,
    WheelMetadataInspector,
    parse_tool_output,
)
from wheel_rule_engine.model.errors import (
    InspectorProcessError,
    MetadataExtractionError,
    MetadataParseError,
)

WHEEL = Path("/scratch/baz-2.0-py3-none-any.whl")


def test_parse_valid_output() -> None:
    # Covers: F001B0001
    text = '{"requires": ["six", "attrs>=20", "Requests[socks]"], "extras": {"z": ["b"], "a": []}}'
    metadata = parse_tool_output(text, wheel_path=WHEEL)
    assert metadata.requires == ("Requests[socks]", "attrs", "six")
    assert list(metadata.extras) == ["a", "z"]
    assert metadata.extras["z"] == ("b",)


@pytest.mark.parametrize(
    "text",
    ['{"requires": []}', '{"requires": [], "extras": null}'],
    ids=["missing", "null"],
)
def test_parse_without_extras(text: str) -> None:
    # Covers: F001B0007
    assert parse_tool_output(text, wheel_path=WHEEL) == WheelMetadata()


BAD_OUTPUT_CASES: list[dict[str, object]] = [
    {"id": "not_json", "text": "Traceback (most recent call last):", "covers": ["F001B0002"]},
    {"id": "root_list", "text": "[]", "covers": ["F001B0003"]},
    {"id": "requires_missing", "text": '{"extras": {}}', "covers": ["F001B0004"]},
    {"id": "requires_not_strings", "text": '{"requires": [1]}', "covers": ["F001B0004"]},
    {"id": "extras_list", "text": '{"requires": [], "extras": ["x"]}', "covers": ["F001B0005"]},
    {"id": "extras_values_bad", "text": '{"requires": [], "extras": {"x": "y"}}', "covers": ["F001B0005"]},
    {"id": "bad_requirement", "text": '{"requires": ["not valid !!"]}', "covers": ["F001B0006"]},
]


@pytest.mark.parametrize("case", BAD_OUTPUT_CASES, ids=lambda c: str(c["id"]))
def test_parse_malformed_output(case: dict[str, object]) -> None:
    # Covers: see case["covers"]
    with pytest.raises(MetadataParseError) as ei:
        parse_tool_output(str(case["text"]), wheel_path=WHEEL)
    assert ei.value.wheel_path == WHEEL
    assert isinstance(ei.value, MetadataExtractionError)


def _tool(tmp_path: Path, body: str) -> Path:
    tool = tmp_path / "tool.py"
    tool.write_text(body, encoding="utf-8")
    return tool


def test_inspect_runs_tool(tmp_path: Path) -> None:
    # Covers: C001M001B0001
    tool = _tool(
        tmp_path,
        "import json, sys\n"
        "json.dump({'requires': [sys.argv[1].rsplit('/', 1)[-1].split('-')[0]], 'extras': {}}, sys.stdout)\n",
    )
    inspector = WheelMetadataInspector(python_path=sys.executable, wheel_tool_path=tool, verbose=True)
    assert inspector.inspect(tmp_path / "six-1.0-py3-none-any.whl").requires == ("six",)


def test_inspect_tool_failure(tmp_path: Path) -> None:
    # Covers: C001M001B0002
    tool = _tool(tmp_path, "import sys\nprint('partial')\nsys.exit(4)\n")
    inspector = WheelMetadataInspector(python_path=sys.executable, wheel_tool_path=tool)
    wheel = tmp_path / "x-1.0-py3-none-any.whl"
    with pytest.raises(InspectorProcessError) as ei:
        inspector.inspect(wheel)
    assert ei.value.returncode == 4
    assert ei.value.wheel_path == wheel
    assert "partial" in ei.value.output
    assert isinstance(ei.value, MetadataExtractionError)


def test_inspect_missing_interpreter(tmp_path: Path) -> None:
    # Covers: C001M001B0003
    inspector = WheelMetadataInspector(
        python_path=str(tmp_path / "no-such-python"), wheel_tool_path=tmp_path / "tool.py"
    )
    with pytest.raises(InspectorProcessError, match="failed to run wheel tool"):
        inspector.inspect(tmp_path / "x-1.0-py3-none-any.whl")

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from wheel_rule_engine.api import generate
from wheel_rule_engine.config import GeneratorConfig, RuleFlavor
from wheel_rule_engine.model.errors import ConfigError, ExternalProcessError, WheelRuleError


def _parse_bool(value: str) -> bool:
    v = value.strip().lower()
    if v in {"true", "1", "yes", "y"}:
        return True
    if v in {"false", "0", "no", "n"}:
        return False
    raise argparse.ArgumentTypeError("expected true or false")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="wheel-rules",
        description="Generate Bazel library and download rules from resolved Python wheels.",
    )
    parser.add_argument("--config", type=Path, help="TOML or JSON configuration file; flags override it")
    parser.add_argument("--requirements", type=Path, help="path to requirements.txt")
    parser.add_argument("--output_dir", type=Path, help="Base directory where generated files will be placed")
    parser.add_argument("--output_file_name", help="File name of generated .bzl file (placed in --output_dir)")
    parser.add_argument(
        "--wheel_dir",
        help="Directory to save wheels, relative to --output_dir; empty disables vendoring",
    )
    parser.add_argument(
        "--prefer_remote",
        type=_parse_bool,
        help="Reference wheels by their download URL when possible instead of vendoring them",
    )
    parser.add_argument("--rules_workspace", help="Bazel workspace path for the library rules")
    parser.add_argument(
        "--rule_type",
        dest="rule_flavor",
        choices=[f.value for f in RuleFlavor],
        help="Type of rules to generate",
    )
    parser.add_argument("--workspace_prefix", help="Prefix for generated repository rules")
    parser.add_argument("--python_path", help="Python interpreter used to run pip and the wheel tool")
    parser.add_argument("--wheel_tool_path", type=Path, help="Tool that prints the requirements of a wheel")
    parser.add_argument("--max_download_workers", type=int)
    parser.add_argument(
        "--delete_unused_wheels",
        action="store_true",
        default=None,
        help="Delete wheels in --wheel_dir that are no longer used",
    )
    parser.add_argument(
        "--verbose", action="store_true", default=None, help="Log verbose output; log pip output"
    )
    parser.add_argument(
        "--dump_config",
        action="store_true",
        help="Print the effective configuration as TOML and exit",
    )
    return parser


def load_config(args: argparse.Namespace) -> GeneratorConfig:
    base = GeneratorConfig.from_file(args.config) if args.config else GeneratorConfig()
    return base.with_overrides(
        requirements=args.requirements,
        output_dir=args.output_dir,
        output_file_name=args.output_file_name,
        wheel_dir=args.wheel_dir,
        prefer_remote=args.prefer_remote,
        rules_workspace=args.rules_workspace,
        rule_flavor=RuleFlavor(args.rule_flavor) if args.rule_flavor else None,
        workspace_prefix=args.workspace_prefix,
        python_path=args.python_path,
        wheel_tool_path=args.wheel_tool_path,
        max_download_workers=args.max_download_workers,
        delete_unused_wheels=args.delete_unused_wheels,
        verbose=args.verbose,
    )


def main(argv: list[str] | None = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config(args)
    except (ConfigError, OSError, TypeError, ValueError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 2

    if args.dump_config:
        sys.stdout.write(config.to_toml())
        return 0

    logging.basicConfig(
        level=logging.DEBUG if config.verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
    )

    try:
        report = generate(config, command_line=" ".join(argv))
    except ConfigError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2
    except ExternalProcessError as e:
        print(f"error: {e}", file=sys.stderr)
        if e.output:
            print(e.output, file=sys.stderr)
        return 1
    except (WheelRuleError, OSError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    logging.info(
        f"wrote {report.output_path} ({len(report.dependencies)} packages, "
        f"{len(report.warnings)} warnings)"
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())

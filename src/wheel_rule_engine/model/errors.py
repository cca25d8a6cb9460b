from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path


class WheelRuleError(Exception):
    """
    Base error type for rule generation failures.
    """


class ConfigError(WheelRuleError):
    """
    Raised when the configuration is invalid or incomplete. Reported before any
    work begins.
    """


class ExternalProcessError(WheelRuleError):
    """
    Raised when an external collaborator process cannot be launched or exits
    with a non-zero status.
    """

    def __init__(
        self,
        message: str,
        *,
        command: Sequence[str],
        returncode: int | None = None,
        output: str = "",
    ):
        WheelRuleError.__init__(self, message)
        self.command = tuple(command)
        self.returncode = returncode
        self.output = output


class ResolverProcessError(ExternalProcessError):
    """
    Raised when the package resolver process fails. Its exit status is
    authoritative regardless of how much output was parsed.
    """


class MetadataExtractionError(WheelRuleError):
    """
    Raised when dependency metadata cannot be extracted from a wheel.
    """

    def __init__(self, message: str, *, wheel_path: Path | str):
        WheelRuleError.__init__(self, message)
        self.wheel_path = Path(wheel_path)


class MetadataParseError(MetadataExtractionError):
    """
    Raised when the metadata inspector returns malformed output.
    """


class InspectorProcessError(ExternalProcessError, MetadataExtractionError):
    def __init__(
        self,
        message: str,
        *,
        wheel_path: Path | str,
        command: Sequence[str],
        returncode: int | None = None,
        output: str = "",
    ):
        ExternalProcessError.__init__(
            self, message, command=command, returncode=returncode, output=output
        )
        self.wheel_path = Path(wheel_path)


class DownloadError(WheelRuleError, OSError):
    """
    Raised when a wheel cannot be fetched by any download strategy.
    """

    def __init__(self, message: str, *, url: str, causes: Sequence[BaseException] = ()):
        WheelRuleError.__init__(self, message)
        self.url = url
        self.causes = tuple(causes)

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""


class AmbiguityWarning(UserWarning):
    """
    Non-fatal reconciliation finding: a duplicate platform candidate was
    discarded, or a package does not cover every platform.
    """

    DUPLICATE_CANDIDATE = "duplicate_candidate"
    INCOMPLETE_COVERAGE = "incomplete_coverage"

    def __init__(
        self,
        message: str,
        *,
        kind: str,
        package: str,
        kept: str | None = None,
        discarded: str | None = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.package = package
        self.kept = kept
        self.discarded = discarded

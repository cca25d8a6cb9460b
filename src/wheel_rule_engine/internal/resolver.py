from __future__ import annotations

import logging
import re
import subprocess
import time
from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from wheel_rule_engine.internal.builtin_strategies import url_basename
from wheel_rule_engine.model.errors import ResolverProcessError

PIP_LOG_LINK_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"^\s*(Found|Skipping) link\s*(http[^ #]+\.whl)"
)


def scan_links(lines: Iterable[str]) -> dict[str, str]:
    """
    Collect ``wheel filename -> link`` from pip's verbose log lines.

    pip's on-disk wheel names do not keep their download URL, so this is the
    only way to recover where each wheel came from. Non-matching lines are
    ignored.
    """
    links: dict[str, str] = {}
    for line in lines:
        match = PIP_LOG_LINK_PATTERN.match(line)
        if match is None:
            continue
        link = match.group(2)
        links[url_basename(link)] = link
    return links


@dataclass(frozen=True, slots=True)
class PipResolver:
    """
    Resolver collaborator: runs ``pip wheel`` and scans its progress output.
    """

    python_path: str
    verbose: bool = False

    def command(self, requirements: Path, wheel_dir: Path) -> list[str]:
        return [
            self.python_path,
            "-m",
            "pip",
            "wheel",
            "--verbose",
            "--disable-pip-version-check",
            "--requirement",
            str(requirements),
            "--wheel-dir",
            str(wheel_dir),
        ]

    def resolve(self, requirements: Path, wheel_dir: Path) -> dict[str, str]:
        """
        Run pip to completion and return the links it reported.

        stdout is drained line by line until EOF so the pipe never fills; the
        exit status is checked only afterwards and a failure is fatal no matter
        how many links were collected.
        """
        cmd = self.command(requirements, wheel_dir)
        logging.info("Running pip to resolve dependencies...")
        logging.debug(f"  command: {' '.join(cmd)}")
        start = time.monotonic()

        links: dict[str, str] = {}
        tail: deque[str] = deque(maxlen=50)
        try:
            with subprocess.Popen(
                cmd,
                stdout=subprocess.PIPE,
                text=True,
                errors="replace",
                bufsize=1,
            ) as proc:
                for line in proc.stdout or ():
                    line = line.rstrip("\n")
                    if self.verbose:
                        logging.debug(line)
                    tail.append(line)
                    links.update(scan_links([line]))
                returncode = proc.wait()
        except OSError as e:
            raise ResolverProcessError(
                f"failed to run pip: {e}", command=cmd
            ) from e

        if returncode != 0:
            raise ResolverProcessError(
                f"pip exited with status {returncode}",
                command=cmd,
                returncode=returncode,
                output="\n".join(tail),
            )

        logging.info(f"pip executed in {time.monotonic() - start:.2f}s")
        return links

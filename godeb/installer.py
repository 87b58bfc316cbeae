"""
Install and remove packages with dpkg.

Commands are prefixed with sudo when not running as root. Output of dpkg is
passed through to the terminal.
"""

from __future__ import annotations

import os
import subprocess
from pathlib import Path

from .deb import PACKAGE_NAME
from .errors import InstallerExecutionError


def _privileged(args: list[str]) -> list[str]:
    if os.getuid() != 0:
        return ["sudo", *args]
    return args


class DpkgInstaller:
    """Package installer backed by dpkg."""

    def __init__(self, package_name: str = PACKAGE_NAME):
        self.package_name = package_name

    def _run(self, args: list[str], action: str) -> None:
        command = _privileged(args)
        print(f"Running: {' '.join(command)}")
        try:
            subprocess.run(command, check=True)
        except subprocess.CalledProcessError as e:
            raise InstallerExecutionError(
                f"while {action} {self.package_name} package: {command[0]} exited with status {e.returncode}"
            ) from e
        except FileNotFoundError as e:
            raise InstallerExecutionError(f"while {action} {self.package_name} package: {command[0]} not found") from e

    def install(self, path: Path | str) -> None:
        self._run(["dpkg", "-i", str(path)], "installing")

    def remove(self) -> None:
        self._run(["dpkg", "--purge", self.package_name], "removing")

    def installed_version(self) -> str | None:
        """
        Return the Debian version of the installed package, or None.

        Raises:
            InstallerExecutionError: If dpkg-query cannot be run at all.
        """
        try:
            result = subprocess.run(
                ["dpkg-query", "-f", "${Status} ${Version}", "-W", self.package_name],
                capture_output=True,
                text=True,
            )
        except FileNotFoundError as e:
            raise InstallerExecutionError("dpkg-query not found; is this a Debian-based system?") from e

        # dpkg-query exits 1 for packages it has never heard of
        if result.returncode != 0:
            return None

        # e.g. "install ok installed 1.21.0-godeb1"
        fields = result.stdout.split()
        if len(fields) == 4 and fields[2] == "installed":
            return fields[3]
        return None

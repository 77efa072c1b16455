from __future__ import annotations

import logging
import os
from typing import List, Sequence

from .command import run_cmd, which

logger = logging.getLogger(__name__)

APT_ENV = {"DEBIAN_FRONTEND": "noninteractive"}


def _privileged(argv: Sequence[str]) -> List[str]:
    if os.geteuid() != 0 and which("sudo"):
        return ["sudo", "-E", *argv]
    return list(argv)


def apt_available() -> bool:
    return which("apt-get") is not None


def dpkg_installed(package: str) -> bool:
    """Return True if dpkg reports the package fully installed."""

    r = run_cmd(["dpkg-query", "-W", "-f=${Status}", package], check=False)
    return r.ok and r.stdout.strip() == "install ok installed"


def missing_packages(packages: Sequence[str]) -> List[str]:
    return [p for p in packages if not dpkg_installed(p)]


def apt_update(*, dry_run: bool = False) -> None:
    run_cmd(_privileged(["apt-get", "update", "-y"]), env=APT_ENV, dry_run=dry_run)


def apt_install(packages: Sequence[str], *, dry_run: bool = False) -> None:
    if not packages:
        return
    run_cmd(_privileged(["apt-get", "install", "-y", *packages]), env=APT_ENV, dry_run=dry_run)

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from .command import run_cmd

logger = logging.getLogger(__name__)


def clone_repo(url: str, dest: str, *, branch: Optional[str] = None, dry_run: bool = False) -> None:
    """Clone url into dest. Existing checkouts are never touched."""

    argv = ["git", "clone"]
    if branch:
        argv += ["--branch", branch]
    argv += [url, dest]
    if not dry_run:
        Path(dest).parent.mkdir(parents=True, exist_ok=True)
    run_cmd(argv, dry_run=dry_run)

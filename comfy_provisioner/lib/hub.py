from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Optional

from .command import run_cmd

logger = logging.getLogger(__name__)


def _token_env(token: Optional[str]) -> Dict[str, str]:
    # The hub client reads HF_TOKEN from its environment; an empty value
    # hides any inherited token so it falls back to its own cached login.
    return {"HF_TOKEN": token or ""}


def hub_login(hub_cli: str, token: str, *, dry_run: bool = False) -> bool:
    """Check the token against the hub. Returns False on failure instead of raising.

    The token travels in the child's environment, never in argv.
    """

    r = run_cmd([hub_cli, "whoami"], check=False, env=_token_env(token), dry_run=dry_run)
    return r.ok


def hub_download(
    hub_cli: str,
    repo_id: str,
    filename: str,
    dest_dir: str,
    *,
    token: Optional[str] = None,
    dry_run: bool = False,
) -> None:
    """Download one file straight into dest_dir (no cache symlinks), resuming partials."""

    if not dry_run:
        Path(dest_dir).mkdir(parents=True, exist_ok=True)
    argv = [hub_cli, "download", repo_id, filename, "--local-dir", dest_dir, "--resume-download"]
    run_cmd(argv, env=_token_env(token), dry_run=dry_run)

from __future__ import annotations

import json
import logging
import shutil
import tempfile
from pathlib import Path
from typing import List, Optional, Sequence

from .command import CommandError, run_cmd, which

logger = logging.getLogger(__name__)


def resolve_conda(conda_bin: str) -> Optional[str]:
    """Locate conda at the install prefix first, then on PATH."""

    if Path(conda_bin).is_file():
        return conda_bin
    return which("conda")


def conda_root(conda: str) -> str:
    """Install prefix of a conda executable (<prefix>/bin/conda or <prefix>/condabin/conda)."""

    return str(Path(conda).resolve().parents[1])


def download_file(url: str, dest: str, *, dry_run: bool = False) -> None:
    if which("wget"):
        run_cmd(["wget", "-q", url, "-O", dest], dry_run=dry_run)
    else:
        run_cmd(["curl", "-fsSL", url, "-o", dest], dry_run=dry_run)


def install_miniconda(url: str, prefix: str, *, dry_run: bool = False) -> None:
    """Fetch the Miniconda installer, run it in batch mode, discard it.

    -u lets a prefix left behind by an interrupted install be reused.
    """

    tmp = tempfile.mkdtemp(prefix="miniconda-")
    try:
        installer = str(Path(tmp) / "miniconda.sh")
        download_file(url, installer, dry_run=dry_run)
        run_cmd(["bash", installer, "-b", "-u", "-p", prefix], dry_run=dry_run)
    finally:
        shutil.rmtree(tmp, ignore_errors=True)

    conda = str(Path(prefix) / "bin" / "conda")
    r = run_cmd([conda, "init", "bash"], check=False, dry_run=dry_run)
    if not r.ok:
        logger.warning("conda init bash failed (%s); continuing", r.returncode)


def list_envs(conda: str) -> List[str]:
    """Names of existing conda environments (basename of each env prefix)."""

    r = run_cmd([conda, "env", "list", "--json"])
    try:
        data = json.loads(r.stdout or "{}")
    except json.JSONDecodeError as e:
        raise CommandError(f"{conda} env list --json", 0, f"unparseable output: {e}") from e
    return [Path(p).name for p in data.get("envs") or []]


def env_exists(conda: str, name: str) -> bool:
    return name in list_envs(conda)


def create_env(conda: str, name: str, python_version: str, *, dry_run: bool = False) -> None:
    run_cmd([conda, "create", "-y", "-n", name, f"python={python_version}"], dry_run=dry_run)


def python_can_import(python: str, modules: Sequence[str]) -> bool:
    if not Path(python).is_file():
        return False
    r = run_cmd([python, "-c", "import " + ", ".join(modules)], check=False)
    return r.ok


def pip_install(
    python: str,
    specs: Sequence[str],
    *,
    index_url: Optional[str] = None,
    upgrade: bool = False,
    requirements: Optional[str] = None,
    cwd: Optional[str] = None,
    dry_run: bool = False,
) -> None:
    argv = [python, "-m", "pip", "install"]
    if upgrade:
        argv.append("--upgrade")
    if requirements:
        argv += ["-r", requirements]
    argv += list(specs)
    if index_url:
        argv += ["--index-url", index_url]
    run_cmd(argv, cwd=cwd, dry_run=dry_run)


def pip_has(python: str, distributions: Sequence[str]) -> bool:
    """True if every distribution is installed in the interpreter's env."""

    if not distributions:
        return True
    if not Path(python).is_file():
        return False
    r = run_cmd([python, "-m", "pip", "show", "-q", *distributions], check=False)
    return r.ok

from __future__ import annotations

import logging
import os
import shlex
import shutil
import subprocess
from dataclasses import dataclass
from typing import Iterable, Mapping, NoReturn, Sequence

from ..errors import LaunchError

logger = logging.getLogger(__name__)

REDACTED = "***"


@dataclass(frozen=True)
class CmdResult:
    argv: list[str]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class CommandError(RuntimeError):
    def __init__(self, argv_text: str, returncode: int, stderr: str) -> None:
        super().__init__(f"Command failed ({returncode}): {argv_text}\n{stderr}".rstrip())
        self.argv_text = argv_text
        self.returncode = returncode
        self.stderr = stderr


def _fmt_argv(argv: Sequence[str], redact: Iterable[str] = ()) -> str:
    secrets = [s for s in redact if s]
    out = []
    for a in argv:
        for s in secrets:
            a = a.replace(s, REDACTED)
        out.append(shlex.quote(a))
    return " ".join(out)


def which(name: str) -> str | None:
    return shutil.which(name)


def run_cmd(
    argv: Sequence[str],
    *,
    check: bool = True,
    env: Mapping[str, str] | None = None,
    cwd: str | None = None,
    dry_run: bool = False,
    redact: Iterable[str] = (),
) -> CmdResult:
    """Run a command with consistent logging.

    - Always logs the command, with any ``redact`` values masked.
    - Captures stdout/stderr (logged at DEBUG).
    - dry_run logs but does not execute.
    """

    argv_list = list(argv)
    secrets = list(redact)
    argv_text = _fmt_argv(argv_list, secrets)
    logger.info("CMD %s", argv_text)

    if dry_run:
        return CmdResult(argv=argv_list, returncode=0, stdout="", stderr="")

    try:
        p = subprocess.run(
            argv_list,
            text=True,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            cwd=cwd,
            env=dict(os.environ, **(env or {})),
        )
    except FileNotFoundError as e:
        # Missing executable behaves like a failed command.
        if check:
            raise CommandError(argv_text, 127, str(e)) from e
        return CmdResult(argv=argv_list, returncode=127, stdout="", stderr=str(e))

    stderr = p.stderr or ""
    for s in secrets:
        if s:
            stderr = stderr.replace(s, REDACTED)

    if p.stdout:
        logger.debug("STDOUT %s", p.stdout.strip())
    if stderr:
        logger.debug("STDERR %s", stderr.strip())

    if check and p.returncode != 0:
        raise CommandError(argv_text, p.returncode, stderr)

    return CmdResult(argv=argv_list, returncode=p.returncode, stdout=p.stdout or "", stderr=stderr)


def exec_replace(
    argv: Sequence[str],
    *,
    cwd: str | None = None,
    env: Mapping[str, str] | None = None,
) -> NoReturn:
    """Replace the current process image with ``argv``. Never returns."""

    argv_list = list(argv)
    logger.info("EXEC %s (cwd=%s)", _fmt_argv(argv_list), cwd or os.getcwd())
    for h in logging.getLogger().handlers:
        h.flush()
    try:
        if cwd:
            os.chdir(cwd)
        os.execve(argv_list[0], argv_list, dict(os.environ, **(env or {})))
    except OSError as e:
        raise LaunchError(f"Could not exec {argv_list[0]}: {e}") from e
    # os.execve does not return on success.
    raise LaunchError(f"exec of {argv_list[0]} returned unexpectedly")

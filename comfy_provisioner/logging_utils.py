from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable

LOG_FILE_NAME = "comfy-provision.log"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class RedactingFilter(logging.Filter):
    """Mask secret values in any record before a handler writes it."""

    def __init__(self, secrets: Iterable[str]) -> None:
        super().__init__()
        self.secrets = [s for s in secrets if s]

    def filter(self, record: logging.LogRecord) -> bool:
        if not self.secrets:
            return True
        msg = record.getMessage()
        masked = msg
        for s in self.secrets:
            masked = masked.replace(s, "***")
        if masked != msg:
            record.msg = masked
            record.args = None
        return True


def _open_file_handler(log_path: str) -> tuple[logging.Handler, str]:
    try:
        Path(os.path.dirname(log_path) or ".").mkdir(parents=True, exist_ok=True)
        return logging.FileHandler(log_path), log_path
    except OSError:
        # Workspace volume not mounted or read-only.
        fallback = str(Path.cwd() / LOG_FILE_NAME)
        return logging.FileHandler(fallback), fallback


def configure_logging(
    log_path: str,
    level: int | str = logging.INFO,
    also_console: bool = True,
    secrets: Iterable[str] = (),
) -> str:
    """Configure root logging for a provisioning run; return the log file used.

    Safe to call twice: the second call only adjusts the level. Every handler
    carries a RedactingFilter for ``secrets`` (the hub token).
    """

    root = logging.getLogger()
    root.setLevel(level)

    if getattr(root, "_comfy_provision_configured", False):
        return getattr(root, "_comfy_provision_log_path", log_path)

    fmt = logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S%z")
    redact = RedactingFilter(secrets)

    file_handler, chosen_path = _open_file_handler(log_path)
    handlers: list[logging.Handler] = [file_handler]
    if also_console:
        handlers.append(logging.StreamHandler())

    for h in handlers:
        h.setFormatter(fmt)
        h.addFilter(redact)
        root.addHandler(h)

    setattr(root, "_comfy_provision_configured", True)
    setattr(root, "_comfy_provision_log_path", chosen_path)

    logging.getLogger(__name__).info(
        "Logging to %s (requested %s, level %s)", chosen_path, log_path, logging.getLevelName(root.level)
    )
    return chosen_path

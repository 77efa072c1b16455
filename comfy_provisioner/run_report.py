from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict

import yaml

from .pipeline import StageContext

logger = logging.getLogger(__name__)


def _detect_format(path: Path) -> str:
    ext = path.suffix.lower().lstrip(".")
    if ext in {"yaml", "yml"}:
        return "yaml"
    # Default to JSON for unknown extensions.
    return "json"


def build_report(ctx: StageContext) -> Dict[str, Any]:
    """Informational snapshot of a run. Never read back for idempotence."""

    return {
        "finished_at": datetime.now(timezone.utc).isoformat(timespec="seconds"),
        "phase": ctx.phase.value,
        "dry_run": ctx.dry_run,
        "ran_steps": list(ctx.ran_steps),
        "skipped_steps": list(ctx.skipped_steps),
        "warnings": list(ctx.warnings),
        "failed_assets": list(ctx.failed_assets),
        "error": ctx.error,
        "config": ctx.config.redacted(),
    }


def save_report(path: str, report: Dict[str, Any]) -> str:
    """Write the report; falls back to the working directory if path is unwritable."""

    p = Path(path)
    if _detect_format(p) == "yaml":
        text = yaml.safe_dump(report, sort_keys=False)
    else:
        text = json.dumps(report, indent=2, sort_keys=True) + "\n"

    try:
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(text, encoding="utf-8")
    except OSError as e:
        fallback = Path.cwd() / p.name
        logger.warning("Cannot write report to %s (%s); using %s", p, e, fallback)
        fallback.write_text(text, encoding="utf-8")
        p = fallback
    logger.info("Run report written to %s", p)
    return str(p)

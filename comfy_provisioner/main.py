from __future__ import annotations

import argparse
import logging
import os
from pathlib import Path
from typing import List, Mapping, Optional

from .config import DEFAULT_ENV_FILE, ProvisionConfig, load_config
from .errors import ConfigError, ProvisionError
from .launcher import Launcher
from .lib.env import Paths
from .logging_utils import LOG_FILE_NAME, configure_logging
from .pipeline import RunPhase, Stage, StageContext, check_stages, run_pipeline
from .run_report import build_report, save_report
from .steps import (
    CloneComfyUIStep,
    CloneDyPEStep,
    CloneKJNodesStep,
    ComfyRequirementsStep,
    DownloadModelsStep,
    HubClientStep,
    InstallCondaStep,
    InstallTorchStep,
    PythonEnvStep,
    SystemPackagesStep,
)

logger = logging.getLogger(__name__)


def build_steps() -> List[Stage]:
    return [
        SystemPackagesStep(),
        InstallCondaStep(),
        PythonEnvStep(),
        InstallTorchStep(),
        CloneComfyUIStep(),
        ComfyRequirementsStep(),
        CloneKJNodesStep(),
        CloneDyPEStep(),
        HubClientStep(),
        DownloadModelsStep(),
    ]


def make_context(cfg: ProvisionConfig, *, dry_run: bool = False) -> StageContext:
    return StageContext(config=cfg, paths=Paths.from_config(cfg), dry_run=dry_run)


def run(
    *,
    env_file: Optional[str] = DEFAULT_ENV_FILE,
    log_path: Optional[str] = None,
    report_path: Optional[str] = None,
    start_at: Optional[str] = None,
    stop_after: Optional[str] = None,
    launch: bool = True,
    dry_run: bool = False,
    environ: Optional[Mapping[str, str]] = None,
) -> StageContext:
    """Provision the workspace, write the run report, then hand off to ComfyUI.

    With ``launch`` set and a real (non dry) run this does not return.
    """

    cfg = load_config(env_file, environ)
    ctx = make_context(cfg, dry_run=dry_run)
    configure_logging(
        log_path=log_path or ctx.paths.log_default,
        level=cfg.log_level,
        secrets=[cfg.hf_token or ""],
    )
    report_path = report_path or ctx.paths.report_default

    try:
        run_pipeline(ctx=ctx, steps=build_steps(), start_at=start_at, stop_after=stop_after)
    except ProvisionError:
        save_report(report_path, build_report(ctx))
        raise
    except Exception as e:
        logger.exception("Provisioner failed")
        ctx.phase = RunPhase.FAILED
        ctx.error = {"step": ctx.current_step, "kind": type(e).__name__, "error": str(e)}
        save_report(report_path, build_report(ctx))
        raise

    # The report must hit disk before exec replaces this process.
    save_report(report_path, build_report(ctx))

    if launch and stop_after is None:
        try:
            Launcher().launch(ctx)
        except ProvisionError as e:
            ctx.error = {"step": e.stage, "kind": type(e).__name__, "error": str(e)}
            save_report(report_path, build_report(ctx))
            raise
    return ctx


def check(*, env_file: Optional[str] = DEFAULT_ENV_FILE, environ: Optional[Mapping[str, str]] = None) -> dict:
    cfg = load_config(env_file, environ)
    status = check_stages(make_context(cfg), build_steps())
    for step_id, ok in status.items():
        print(f"{'done' if ok else 'todo':5} {step_id}")
    return status


def main(argv: Optional[list[str]] = None) -> int:
    p = argparse.ArgumentParser(prog="comfy-provision", description="Provision ComfyUI + FLUX and start it")
    p.add_argument("--env-file", default=DEFAULT_ENV_FILE, help="KEY=value or YAML override file (optional)")
    p.add_argument("--log", default=None, help="Log file (default: $WORKSPACE_DIR/comfy-provision.log)")
    p.add_argument("--report", default=None, help="Run report path (json|yaml)")
    p.add_argument("--start-at", default=None, help="Start at stage id (e.g. 50_clone_comfyui)")
    p.add_argument("--stop-after", default=None, help="Stop after stage id; implies --no-launch")
    p.add_argument("--no-launch", action="store_true", help="Provision only, do not start ComfyUI")
    p.add_argument("--check", action="store_true", help="Report which stages are already satisfied and exit")
    p.add_argument("--dry-run", action="store_true", help="Log commands instead of running them")

    args = p.parse_args(argv)

    try:
        if args.check:
            check(env_file=args.env_file)
            return 0
        run(
            env_file=args.env_file,
            log_path=args.log,
            report_path=args.report,
            start_at=args.start_at,
            stop_after=args.stop_after,
            launch=not args.no_launch,
            dry_run=bool(args.dry_run),
        )
    except ConfigError as e:
        configure_logging(log_path=args.log or str(Path(os.getcwd()) / LOG_FILE_NAME))
        logger.error("Configuration error: %s", e)
        return 1
    except ProvisionError as e:
        logger.error("Stage %s failed: %s", e.stage or "?", e)
        return 1
    return 0

from __future__ import annotations

import logging
from pathlib import Path
from typing import List

from .errors import LaunchError
from .lib.command import exec_replace
from .pipeline import RunPhase, StageContext

logger = logging.getLogger(__name__)

LISTEN_HOST = "0.0.0.0"


class Launcher:
    """Terminal transition READY -> LAUNCHED: hand the process to ComfyUI.

    Nothing supervises the server afterwards; its lifecycle is its own.
    """

    def argv(self, ctx: StageContext) -> List[str]:
        return [
            ctx.paths.env_python,
            "main.py",
            "--listen",
            LISTEN_HOST,
            "--port",
            str(ctx.config.port),
            "--enable-cors-header",
            "--disable-auto-launch",
            "--disable-metadata",
        ]

    def banner(self, ctx: StageContext) -> None:
        port = ctx.config.port
        logger.info("=" * 65)
        logger.info("Starting ComfyUI on %s:%s", LISTEN_HOST, port)
        logger.info("Open from the pod's connect panel: https://<pod-host>:%s", port)
        logger.info("Next steps in the UI:")
        logger.info("  - Load your DyPE/FLUX workflow JSON")
        logger.info("  - Ensure KJNodes Sage Attention is patched")
        logger.info("  - Model Patch Torch Settings: enable_fp16_accumulation = true")
        logger.info("  - EmptySD3LatentImage presets: 4096x4096, 4096x2304, 2304x4096")
        logger.info("=" * 65)

    def launch(self, ctx: StageContext) -> None:
        if ctx.phase is not RunPhase.READY:
            raise LaunchError(f"Refusing to launch from phase {ctx.phase.value}", stage="launch")

        argv = self.argv(ctx)
        comfy_dir = ctx.paths.comfy_dir
        if not ctx.dry_run:
            if not Path(argv[0]).is_file():
                raise LaunchError(f"Interpreter {argv[0]} not found", stage="launch")
            if not (Path(comfy_dir) / "main.py").is_file():
                raise LaunchError(f"{comfy_dir}/main.py not found", stage="launch")

        self.banner(ctx)
        ctx.phase = RunPhase.LAUNCHED
        if ctx.dry_run:
            logger.info("Dry run: would exec %s in %s", " ".join(argv), comfy_dir)
            return

        try:
            exec_replace(argv, cwd=comfy_dir)
        except LaunchError as e:
            ctx.phase = RunPhase.FAILED
            e.stage = "launch"
            raise

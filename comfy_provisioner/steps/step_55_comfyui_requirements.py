from __future__ import annotations

import logging
from pathlib import Path

from ..errors import EnvironmentSetupError
from ..lib.conda import pip_has, pip_install
from ..lib.requirements import requirement_names
from ..pipeline import StageContext

logger = logging.getLogger(__name__)


class ComfyRequirementsStep:
    step_id = "55_comfyui_requirements"
    error_cls = EnvironmentSetupError

    def _requirements(self, ctx: StageContext) -> Path:
        return Path(ctx.paths.comfy_dir) / "requirements.txt"

    def is_satisfied(self, ctx: StageContext) -> bool:
        req = self._requirements(ctx)
        if not req.is_file():
            return False
        return pip_has(ctx.paths.env_python, requirement_names(str(req)))

    def run(self, ctx: StageContext) -> None:
        req = self._requirements(ctx)
        if not req.is_file():
            if ctx.dry_run:
                logger.info("Would install %s", req)
                return
            raise EnvironmentSetupError(f"{req} not found; is the ComfyUI checkout complete?")
        pip_install(ctx.paths.env_python, [], requirements=str(req), cwd=ctx.paths.comfy_dir, dry_run=ctx.dry_run)

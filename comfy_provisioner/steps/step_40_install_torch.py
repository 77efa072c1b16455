from __future__ import annotations

import logging
from pathlib import Path

from ..errors import EnvironmentSetupError
from ..lib.conda import pip_install, python_can_import
from ..pipeline import StageContext

logger = logging.getLogger(__name__)

FRAMEWORK_MODULES = ("torch", "torchvision")


class InstallTorchStep:
    step_id = "40_install_torch"
    error_cls = EnvironmentSetupError

    def is_satisfied(self, ctx: StageContext) -> bool:
        # A successful import, not a directory check: a half-finished pip run
        # leaves site-packages behind.
        return python_can_import(ctx.paths.env_python, FRAMEWORK_MODULES)

    def run(self, ctx: StageContext) -> None:
        cfg = ctx.config
        python = ctx.paths.env_python
        if not ctx.dry_run and not Path(python).is_file():
            raise EnvironmentSetupError(f"Interpreter {python} missing; conda env {ctx.paths.env_name} is broken")

        logger.info("Installing PyTorch %s (%s)", cfg.torch_version, cfg.cuda_tag)
        pip_install(python, ["pip"], upgrade=True, dry_run=ctx.dry_run)
        pip_install(
            python,
            [f"torch=={cfg.torch_version}", f"torchvision=={cfg.torchvision_version}"],
            index_url=cfg.torch_index_url,
            dry_run=ctx.dry_run,
        )

        if not ctx.dry_run and not python_can_import(python, FRAMEWORK_MODULES):
            raise EnvironmentSetupError("PyTorch installed but `import torch, torchvision` still fails")

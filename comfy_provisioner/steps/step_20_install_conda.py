from __future__ import annotations

import logging

from ..errors import EnvironmentSetupError
from ..lib.conda import install_miniconda, resolve_conda
from ..pipeline import StageContext

logger = logging.getLogger(__name__)


def require_conda(ctx: StageContext) -> str:
    conda = resolve_conda(ctx.paths.conda_bin)
    if conda:
        return conda
    if ctx.dry_run:
        return ctx.paths.conda_bin
    raise EnvironmentSetupError(f"conda not found at {ctx.paths.conda_bin} or on PATH")


class InstallCondaStep:
    step_id = "20_install_conda"
    error_cls = EnvironmentSetupError

    def is_satisfied(self, ctx: StageContext) -> bool:
        return resolve_conda(ctx.paths.conda_bin) is not None

    def run(self, ctx: StageContext) -> None:
        logger.info("Installing Miniconda into %s", ctx.paths.conda_prefix)
        install_miniconda(ctx.config.miniconda_url, ctx.paths.conda_prefix, dry_run=ctx.dry_run)
        if not ctx.dry_run and resolve_conda(ctx.paths.conda_bin) is None:
            raise EnvironmentSetupError(f"Miniconda installer finished but {ctx.paths.conda_bin} is missing")

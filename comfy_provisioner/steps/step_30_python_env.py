from __future__ import annotations

import logging

from ..errors import EnvironmentSetupError
from ..lib.conda import create_env, env_exists, resolve_conda
from ..pipeline import StageContext
from .step_20_install_conda import require_conda

logger = logging.getLogger(__name__)


class PythonEnvStep:
    step_id = "30_python_env"
    error_cls = EnvironmentSetupError

    def is_satisfied(self, ctx: StageContext) -> bool:
        conda = resolve_conda(ctx.paths.conda_bin)
        if conda is None:
            return False
        return env_exists(conda, ctx.paths.env_name)

    def run(self, ctx: StageContext) -> None:
        conda = require_conda(ctx)
        logger.info("Creating conda env %s (python=%s)", ctx.paths.env_name, ctx.config.python_version)
        create_env(conda, ctx.paths.env_name, ctx.config.python_version, dry_run=ctx.dry_run)

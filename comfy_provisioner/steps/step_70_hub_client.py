from __future__ import annotations

import logging
from pathlib import Path

from ..errors import EnvironmentSetupError
from ..lib.conda import pip_install
from ..pipeline import StageContext

logger = logging.getLogger(__name__)


class HubClientStep:
    step_id = "70_hub_client"
    error_cls = EnvironmentSetupError

    def is_satisfied(self, ctx: StageContext) -> bool:
        return Path(ctx.paths.hub_cli).is_file()

    def run(self, ctx: StageContext) -> None:
        pip_install(ctx.paths.env_python, [ctx.config.hub_client_spec], dry_run=ctx.dry_run)
        if not ctx.dry_run and not Path(ctx.paths.hub_cli).is_file():
            raise EnvironmentSetupError(f"{ctx.config.hub_client_spec} installed but {ctx.paths.hub_cli} is missing")

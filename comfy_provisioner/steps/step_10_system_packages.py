from __future__ import annotations

import logging

from ..errors import EnvironmentSetupError
from ..lib.pkg import apt_available, apt_install, apt_update, missing_packages
from ..pipeline import StageContext

logger = logging.getLogger(__name__)


class SystemPackagesStep:
    step_id = "10_system_packages"
    error_cls = EnvironmentSetupError

    def is_satisfied(self, ctx: StageContext) -> bool:
        if not apt_available():
            return False
        return not missing_packages(ctx.config.system_packages)

    def run(self, ctx: StageContext) -> None:
        if not apt_available():
            raise EnvironmentSetupError("apt-get not found; only Debian/Ubuntu hosts are supported")

        missing = missing_packages(ctx.config.system_packages)
        logger.info("Installing system packages: %s", " ".join(missing))
        apt_update(dry_run=ctx.dry_run)
        # apt itself keeps already-installed packages untouched.
        apt_install(missing, dry_run=ctx.dry_run)

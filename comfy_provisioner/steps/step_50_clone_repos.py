from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from ..errors import SourceFetchError
from ..lib.command import CommandError
from ..lib.git import clone_repo
from ..pipeline import StageContext

logger = logging.getLogger(__name__)


class CloneRepoStep:
    """Clone a repository once into custom_nodes/<dir_name>. An existing
    directory is left exactly as is.

    Optional repositories are best-effort: a failed clone is recorded as a
    warning and the run continues.
    """

    step_id = ""
    url = ""
    dir_name = ""
    required = True
    error_cls = SourceFetchError

    def dest(self, ctx: StageContext) -> Path:
        return Path(ctx.paths.custom_nodes_dir) / self.dir_name

    def branch(self, ctx: StageContext) -> Optional[str]:
        return None

    def is_satisfied(self, ctx: StageContext) -> bool:
        return self.dest(ctx).is_dir()

    def run(self, ctx: StageContext) -> None:
        dest = self.dest(ctx)
        logger.info("Cloning %s into %s", self.url, dest)
        try:
            clone_repo(self.url, str(dest), branch=self.branch(ctx), dry_run=ctx.dry_run)
        except CommandError as e:
            if self.required:
                raise SourceFetchError(f"Could not clone {self.url}: {e}", stage=self.step_id) from e
            ctx.warn(self.step_id, f"optional clone of {self.url} failed; continuing", error=str(e))


class CloneComfyUIStep(CloneRepoStep):
    step_id = "50_clone_comfyui"
    url = "https://github.com/comfyanonymous/ComfyUI.git"

    def dest(self, ctx: StageContext) -> Path:
        return Path(ctx.paths.comfy_dir)

    def branch(self, ctx: StageContext) -> Optional[str]:
        return ctx.config.branch_comfy


class CloneKJNodesStep(CloneRepoStep):
    step_id = "60_clone_kjnodes"
    url = "https://github.com/kijai/ComfyUI-KJNodes.git"
    dir_name = "ComfyUI-KJNodes"
    required = False

    def branch(self, ctx: StageContext) -> Optional[str]:
        return ctx.config.branch_kjnodes


class CloneDyPEStep(CloneRepoStep):
    """DyPE is cloned for its docs and example workflows only."""

    step_id = "65_clone_dype"
    url = "https://github.com/guyyariv/DyPE.git"
    dir_name = "DyPE"
    required = False

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

from ..config import AssetDescriptor
from ..errors import AssetDownloadError
from ..lib.command import CommandError
from ..lib.hub import hub_download, hub_login
from ..pipeline import StageContext

logger = logging.getLogger(__name__)


def _human_size(n: int) -> str:
    size = float(n)
    for unit in ("B", "K", "M", "G"):
        if size < 1024:
            return f"{size:.1f}{unit}" if unit != "B" else f"{int(size)}{unit}"
        size /= 1024
    return f"{size:.1f}T"


class DownloadModelsStep:
    """FLUX FP16 UNet, CLIP-L, T5-XXL and VAE from the Hugging Face hub.

    A file that already exists is never downloaded again; its content is not
    verified. Per-asset failures are collected so one bad repo does not hide
    the state of the others.
    """

    step_id = "80_download_models"
    error_cls = AssetDownloadError

    def assets(self, ctx: StageContext) -> List[AssetDescriptor]:
        return ctx.config.assets(ctx.paths.models_dir)

    def is_satisfied(self, ctx: StageContext) -> bool:
        return all(a.dest_path.is_file() for a in self.assets(ctx))

    def _login(self, ctx: StageContext) -> Optional[str]:
        """Return the token to download with, or None if absent or rejected."""

        token = ctx.config.hf_token
        if not token:
            ctx.warn(self.step_id, "HF_TOKEN not set; gated models will fail to download")
            return None
        logger.info("Logging into Hugging Face with provided token")
        if not hub_login(ctx.paths.hub_cli, token, dry_run=ctx.dry_run):
            ctx.warn(self.step_id, "Hugging Face login failed; trying downloads anyway")
            return None
        return token

    def run(self, ctx: StageContext) -> None:
        assets = self.assets(ctx)
        if not ctx.dry_run:
            for a in assets:
                Path(a.dest_dir).mkdir(parents=True, exist_ok=True)

        token = self._login(ctx)

        failed: List[str] = []
        for a in assets:
            if a.dest_path.is_file():
                logger.info("Asset %s present at %s", a.label, a.dest_path)
                continue
            logger.info("Downloading %s -> %s", a.label, a.dest_dir)
            try:
                hub_download(
                    ctx.paths.hub_cli, a.repo_id, a.filename, a.dest_dir, token=token, dry_run=ctx.dry_run
                )
            except CommandError as e:
                ctx.warn(self.step_id, f"download of {a.label} failed", error=str(e))
                failed.append(a.label)

        self._summarize(ctx, assets, failed)

        if failed:
            ctx.failed_assets.extend(failed)
            if ctx.config.asset_failure_policy == "abort":
                raise AssetDownloadError(
                    f"{len(failed)} of {len(assets)} assets failed: {', '.join(failed)}",
                    failed=failed,
                    stage=self.step_id,
                )
            logger.warning("Continuing with missing assets (ASSET_FAILURE_POLICY=continue)")

    def _summarize(self, ctx: StageContext, assets: List[AssetDescriptor], failed: List[str]) -> None:
        logger.info("Models present:")
        for a in assets:
            p = a.dest_path
            if p.is_file():
                logger.info("  %8s  %s", _human_size(p.stat().st_size), p)
            else:
                logger.info("  %8s  %s", "missing", p)
        if failed:
            logger.error("Failed assets: %s", ", ".join(failed))

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from ..config import ProvisionConfig
from .conda import conda_root, resolve_conda


@dataclass(frozen=True)
class Paths:
    """Filesystem layout produced by a provisioning run."""

    workspace: str
    conda_prefix: str
    env_name: str

    @classmethod
    def from_config(cls, cfg: ProvisionConfig) -> "Paths":
        # An existing conda (install dir first, then PATH) owns the env;
        # otherwise Miniconda will be installed into CONDA_INSTALL_DIR.
        conda = resolve_conda(str(Path(cfg.conda_install_dir) / "bin" / "conda"))
        return cls(
            workspace=cfg.workspace_dir,
            conda_prefix=conda_root(conda) if conda else cfg.conda_install_dir,
            env_name=cfg.conda_env_name,
        )

    @property
    def conda_bin(self) -> str:
        return str(Path(self.conda_prefix) / "bin" / "conda")

    @property
    def env_prefix(self) -> str:
        return str(Path(self.conda_prefix) / "envs" / self.env_name)

    @property
    def env_python(self) -> str:
        return str(Path(self.env_prefix) / "bin" / "python")

    @property
    def hub_cli(self) -> str:
        return str(Path(self.env_prefix) / "bin" / "huggingface-cli")

    @property
    def comfy_dir(self) -> str:
        return str(Path(self.workspace) / "ComfyUI")

    @property
    def custom_nodes_dir(self) -> str:
        return str(Path(self.comfy_dir) / "custom_nodes")

    @property
    def models_dir(self) -> str:
        return str(Path(self.comfy_dir) / "models")

    @property
    def log_default(self) -> str:
        return str(Path(self.workspace) / "comfy-provision.log")

    @property
    def report_default(self) -> str:
        return str(Path(self.workspace) / ".provisioner" / "last_run.json")

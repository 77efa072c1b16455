from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional

from dotenv import dotenv_values

from .errors import ConfigError

logger = logging.getLogger(__name__)


DEFAULT_ENV_FILE = ".env"

DEFAULTS: Dict[str, str] = {
    # Toolchain / framework
    "PYTHON_VERSION": "3.10",
    "TORCH_VERSION": "2.4.0",
    "TORCHVISION_VERSION": "0.19.0",
    "CUDA_TAG": "cu121",
    "COMFY_PORT": "8188",
    "GIT_BRANCH_COMFY": "master",
    "GIT_BRANCH_KJNODES": "main",
    # Model assets. Make sure the file names point at the FP16 variants.
    "FLUX_REPO": "black-forest-labs/FLUX.1-dev",
    "FLUX_FILE": "flux1-dev.safetensors",
    "CLIP_REPO": "black-forest-labs/CLIP-L",
    "CLIP_FILE": "clip_l.safetensors",
    "T5_REPO": "black-forest-labs/T5-XXL",
    "T5_FILE": "t5xxl_fp16.safetensors",
    "VAE_REPO": "madebyollin/ae-sdxl-v1",
    "VAE_FILE": "ae.safetensors",
    "HF_TOKEN": "",
    # Layout
    "WORKSPACE_DIR": "/workspace",
    "CONDA_INSTALL_DIR": "/opt/conda",
    "CONDA_ENV_NAME": "comfy",
    "MINICONDA_URL": "https://repo.anaconda.com/miniconda/Miniconda3-latest-Linux-x86_64.sh",
    "SYSTEM_PACKAGES": "git wget curl unzip ffmpeg libgl1-mesa-glx libglib2.0-0",
    "HUB_CLIENT_SPEC": "huggingface_hub>=0.23,<1.0",
    # abort: stop before launch if any asset failed; continue: launch anyway.
    "ASSET_FAILURE_POLICY": "abort",
    "LOG_LEVEL": "INFO",
}

SECRET_KEYS = frozenset({"HF_TOKEN"})

ASSET_FAILURE_POLICIES = ("abort", "continue")

_VERSION_RE = re.compile(r"^\d+(\.\d+){0,3}([a-z]+\d*)?(\+[\w.]+)?$")
_PYTHON_RE = re.compile(r"^3\.\d+(\.\d+)?$")
_CUDA_RE = re.compile(r"^(cu\d{2,3}|cpu|rocm\d+(\.\d+)*)$")
_REPO_RE = re.compile(r"^[\w.-]+/[\w.-]+$")


@dataclass(frozen=True)
class AssetDescriptor:
    """One downloadable model file and where it belongs."""

    kind: str
    repo_id: str
    filename: str
    dest_dir: str

    @property
    def dest_path(self) -> Path:
        return Path(self.dest_dir) / self.filename

    @property
    def label(self) -> str:
        return f"{self.kind}:{self.repo_id}/{self.filename}"


# (config prefix, asset kind, models/ subdirectory)
ASSET_SLOTS = (
    ("FLUX", "unet", "diffusion_models"),
    ("CLIP", "clip", "text_encoders"),
    ("T5", "t5", "text_encoders"),
    ("VAE", "vae", "vae"),
)


@dataclass(frozen=True)
class ProvisionConfig:
    raw: Mapping[str, str]

    def get(self, key: str) -> str:
        return str(self.raw.get(key, DEFAULTS.get(key, "")))

    @property
    def python_version(self) -> str:
        return self.get("PYTHON_VERSION")

    @property
    def torch_version(self) -> str:
        return self.get("TORCH_VERSION")

    @property
    def torchvision_version(self) -> str:
        return self.get("TORCHVISION_VERSION")

    @property
    def cuda_tag(self) -> str:
        return self.get("CUDA_TAG")

    @property
    def torch_index_url(self) -> str:
        return f"https://download.pytorch.org/whl/{self.cuda_tag}"

    @property
    def port(self) -> int:
        return int(self.get("COMFY_PORT"))

    @property
    def branch_comfy(self) -> str:
        return self.get("GIT_BRANCH_COMFY")

    @property
    def branch_kjnodes(self) -> str:
        return self.get("GIT_BRANCH_KJNODES")

    @property
    def hf_token(self) -> Optional[str]:
        token = self.get("HF_TOKEN").strip()
        return token or None

    @property
    def workspace_dir(self) -> str:
        return self.get("WORKSPACE_DIR")

    @property
    def conda_install_dir(self) -> str:
        return self.get("CONDA_INSTALL_DIR")

    @property
    def conda_env_name(self) -> str:
        return self.get("CONDA_ENV_NAME")

    @property
    def miniconda_url(self) -> str:
        return self.get("MINICONDA_URL")

    @property
    def system_packages(self) -> List[str]:
        return self.get("SYSTEM_PACKAGES").split()

    @property
    def hub_client_spec(self) -> str:
        return self.get("HUB_CLIENT_SPEC")

    @property
    def asset_failure_policy(self) -> str:
        return self.get("ASSET_FAILURE_POLICY")

    @property
    def log_level(self) -> str:
        return self.get("LOG_LEVEL").upper()

    def assets(self, models_dir: str) -> List[AssetDescriptor]:
        return [
            AssetDescriptor(
                kind=kind,
                repo_id=self.get(f"{prefix}_REPO"),
                filename=self.get(f"{prefix}_FILE"),
                dest_dir=str(Path(models_dir) / subdir),
            )
            for prefix, kind, subdir in ASSET_SLOTS
        ]

    def redacted(self) -> Dict[str, str]:
        out = dict(self.raw)
        for k in SECRET_KEYS:
            if out.get(k):
                out[k] = "***"
        return out


def read_override_file(path: str) -> Dict[str, str]:
    """Read KEY=value (dotenv) or a flat YAML mapping. Missing file -> {}."""

    p = Path(path)
    if not p.is_file():
        logger.debug("No override file at %s", p)
        return {}

    if p.suffix.lower() in {".yaml", ".yml"}:
        import yaml

        # BaseLoader keeps every scalar a string: `PYTHON_VERSION: 3.10` must not become 3.1.
        try:
            data = yaml.load(p.read_text(encoding="utf-8"), Loader=yaml.BaseLoader) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Override file {p} is not valid YAML: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"Override file {p} must contain a mapping, got {type(data).__name__}")
        for k, v in data.items():
            if isinstance(v, (dict, list)):
                raise ConfigError(f"Override file {p}: {k} must be a scalar")
        values: Dict[str, Any] = data
    else:
        values = dict(dotenv_values(p))

    # dotenv yields None for bare keys without '='
    return {str(k): "" if v is None else str(v) for k, v in values.items()}


def _validate(values: Mapping[str, str]) -> None:
    port = values["COMFY_PORT"].strip()
    if not port.isdigit() or not 1 <= int(port) <= 65535:
        raise ConfigError(f"COMFY_PORT must be an integer in 1..65535, got {port!r}")

    if not _PYTHON_RE.match(values["PYTHON_VERSION"]):
        raise ConfigError(f"PYTHON_VERSION must look like 3.N, got {values['PYTHON_VERSION']!r}")

    for key in ("TORCH_VERSION", "TORCHVISION_VERSION"):
        if not _VERSION_RE.match(values[key]):
            raise ConfigError(f"{key} is not a version: {values[key]!r}")

    if not _CUDA_RE.match(values["CUDA_TAG"]):
        raise ConfigError(f"CUDA_TAG must be cuNNN, cpu or rocmX.Y, got {values['CUDA_TAG']!r}")

    for prefix, _, _ in ASSET_SLOTS:
        repo = values[f"{prefix}_REPO"]
        fname = values[f"{prefix}_FILE"]
        if not _REPO_RE.match(repo):
            raise ConfigError(f"{prefix}_REPO must be owner/name, got {repo!r}")
        if not fname or "/" in fname or fname in {".", ".."}:
            raise ConfigError(f"{prefix}_FILE must be a plain file name, got {fname!r}")

    for key in ("GIT_BRANCH_COMFY", "GIT_BRANCH_KJNODES", "CONDA_ENV_NAME", "WORKSPACE_DIR", "CONDA_INSTALL_DIR"):
        if not values[key].strip():
            raise ConfigError(f"{key} must not be empty")

    if values["ASSET_FAILURE_POLICY"] not in ASSET_FAILURE_POLICIES:
        raise ConfigError(
            f"ASSET_FAILURE_POLICY must be one of {', '.join(ASSET_FAILURE_POLICIES)}, "
            f"got {values['ASSET_FAILURE_POLICY']!r}"
        )

    if not isinstance(logging.getLevelName(values["LOG_LEVEL"].upper()), int):
        raise ConfigError(f"LOG_LEVEL is not a logging level: {values['LOG_LEVEL']!r}")


def load_config(
    env_file: Optional[str] = DEFAULT_ENV_FILE,
    environ: Optional[Mapping[str, str]] = None,
) -> ProvisionConfig:
    """Merge defaults < override file < environment into a ProvisionConfig.

    Only known keys are taken from the file and the environment. An empty
    value counts as unset, like a shell `${VAR:-default}`.
    """

    environ = os.environ if environ is None else environ
    merged: Dict[str, str] = dict(DEFAULTS)
    sources: Dict[str, str] = {}

    file_values = read_override_file(env_file) if env_file else {}
    for k, v in file_values.items():
        if k not in DEFAULTS:
            logger.debug("Ignoring unknown key %s in %s", k, env_file)
            continue
        if not v.strip():
            continue
        merged[k] = v
        sources[k] = "file"

    for k in DEFAULTS:
        if environ.get(k, "").strip():
            merged[k] = environ[k]
            sources[k] = "env"

    _validate(merged)

    for k, src in sorted(sources.items()):
        logger.debug("Config %s from %s", k, src)

    return ProvisionConfig(raw=MappingProxyType(merged))

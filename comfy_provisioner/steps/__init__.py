from .step_10_system_packages import SystemPackagesStep
from .step_20_install_conda import InstallCondaStep
from .step_30_python_env import PythonEnvStep
from .step_40_install_torch import InstallTorchStep
from .step_50_clone_repos import CloneComfyUIStep, CloneDyPEStep, CloneKJNodesStep, CloneRepoStep
from .step_55_comfyui_requirements import ComfyRequirementsStep
from .step_70_hub_client import HubClientStep
from .step_80_download_models import DownloadModelsStep

__all__ = [
    "SystemPackagesStep",
    "InstallCondaStep",
    "PythonEnvStep",
    "InstallTorchStep",
    "CloneRepoStep",
    "CloneComfyUIStep",
    "ComfyRequirementsStep",
    "CloneKJNodesStep",
    "CloneDyPEStep",
    "HubClientStep",
    "DownloadModelsStep",
]

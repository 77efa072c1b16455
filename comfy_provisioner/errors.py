from __future__ import annotations

from typing import List, Optional


class ProvisionError(RuntimeError):
    """Base for every fatal provisioning failure."""

    def __init__(self, message: str, *, stage: Optional[str] = None) -> None:
        super().__init__(message)
        self.stage = stage


class ConfigError(ProvisionError):
    pass


class EnvironmentSetupError(ProvisionError):
    """System packages, conda, python env or framework install failed."""


class SourceFetchError(ProvisionError):
    pass


class AssetDownloadError(ProvisionError):
    def __init__(self, message: str, *, failed: List[str], stage: Optional[str] = None) -> None:
        super().__init__(message, stage=stage)
        self.failed = list(failed)


class LaunchError(ProvisionError):
    pass

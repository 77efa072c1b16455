"""ComfyUI GPU workstation provisioner (state-on-disk, resumable).

Core design goals:
- Idempotent stages, each guarded by an inspectable predicate
- Filesystem and installed packages are the source of truth
- Layered configuration resolved once at startup
- Centralized logging
- Explicit hand-off to the ComfyUI server
"""

__version__ = "0.1.0"

__all__ = ["__version__"]

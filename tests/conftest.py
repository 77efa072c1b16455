from __future__ import annotations

import json
import logging
import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Set

import pytest

from comfy_provisioner.config import load_config
from comfy_provisioner.lib import command
from comfy_provisioner.lib.requirements import requirement_names
from comfy_provisioner.main import make_context

COMFY_REQUIREMENTS = "torch\ntorchsde\naiohttp>=3.8\nPyYAML\n# comment\n--extra-index-url https://x\n"

READ_ONLY_CALLS = ("dpkg-query", "env list", "python -c", "pip show")


class Execed(Exception):
    """Raised by the fake execve so a test can observe the hand-off."""

    def __init__(self, argv: List[str], cwd: str) -> None:
        super().__init__(argv)
        self.argv = argv
        self.cwd = cwd


class FakeWorld:
    """In-memory stand-in for apt, conda, pip, git and huggingface-cli."""

    def __init__(self, root: Path) -> None:
        self.root = root
        self.workspace = root / "workspace"
        self.conda_prefix = root / "conda"
        self.calls: List[List[str]] = []
        self.apt = True
        self.installed_debs: Set[str] = set()
        self.envs: List[str] = []
        self.modules: Set[str] = set()
        self.dists: Set[str] = set()
        self.clone_fail: Set[str] = set()
        self.download_fail: Set[str] = set()
        self.login_ok = True
        self.logins: List[str] = []
        self.download_tokens: List[str] = []
        self.path_conda: Optional[Path] = None

    # -- environment -------------------------------------------------------

    def environ(self, **extra: str) -> Dict[str, str]:
        env = {
            "WORKSPACE_DIR": str(self.workspace),
            "CONDA_INSTALL_DIR": str(self.conda_prefix),
        }
        env.update(extra)
        return env

    def context(self, **extra: str):
        return make_context(load_config(None, self.environ(**extra)))

    # -- introspection -----------------------------------------------------

    def text(self, argv: List[str]) -> str:
        return " ".join(Path(argv[0]).name if i == 0 else a for i, a in enumerate(argv))

    def mutating_calls(self) -> List[str]:
        out = []
        for argv in self.calls:
            t = self.text(argv)
            if not any(p in t for p in READ_ONLY_CALLS):
                out.append(t)
        return out

    def calls_matching(self, needle: str) -> List[str]:
        return [t for t in (self.text(a) for a in self.calls) if needle in t]

    # -- fakes -------------------------------------------------------------

    def which(self, name: str):
        if name in {"apt-get", "dpkg-query"} and self.apt:
            return f"/usr/bin/{name}"
        if name in {"wget", "git", "bash"}:
            return f"/usr/bin/{name}"
        if name == "conda" and self.path_conda is not None:
            return str(self.path_conda)
        return None

    def execve(self, path, argv, env):
        raise Execed(list(argv), str(Path.cwd()))

    def run(self, argv, **kwargs):
        argv = list(argv)
        self.calls.append(argv)
        rc, out = self._dispatch(argv, kwargs.get("env") or {})
        return subprocess.CompletedProcess(argv, rc, out, "" if rc == 0 else "fake failure")

    def _dispatch(self, argv: List[str], env: Dict[str, str]):
        exe = Path(argv[0]).name
        if exe == "dpkg-query":
            return (0, "install ok installed") if argv[-1] in self.installed_debs else (1, "")
        if exe == "apt-get":
            if not self.apt:
                raise FileNotFoundError(argv[0])
            if argv[1] == "install":
                self.installed_debs.update(a for a in argv[2:] if not a.startswith("-"))
            return 0, ""
        if exe == "wget":
            Path(argv[argv.index("-O") + 1]).write_text("#!/bin/sh\n")
            return 0, ""
        if exe == "bash":
            prefix = Path(argv[argv.index("-p") + 1])
            if prefix.exists() and "-u" not in argv:
                return 1, ""
            (prefix / "bin").mkdir(parents=True, exist_ok=True)
            (prefix / "bin" / "conda").write_text("")
            return 0, ""
        if exe == "conda":
            return self._conda(argv)
        if exe == "python":
            return self._python(argv)
        if exe == "git":
            return self._git(argv)
        if exe == "huggingface-cli":
            return self._hub(argv, env)
        return 127, ""

    def _conda(self, argv: List[str]):
        # Envs live under whichever conda install is being called.
        root = Path(argv[0]).resolve().parents[1]
        if argv[1:3] == ["env", "list"]:
            envs = [str(root)] + [str(root / "envs" / n) for n in self.envs]
            return 0, json.dumps({"envs": envs})
        if argv[1] == "create":
            name = argv[argv.index("-n") + 1]
            bindir = root / "envs" / name / "bin"
            bindir.mkdir(parents=True, exist_ok=True)
            (bindir / "python").write_text("")
            self.envs.append(name)
        return 0, ""

    def _python(self, argv: List[str]):
        if argv[1] == "-c":
            wanted = [m.strip() for m in argv[2].replace("import", "").split(",")]
            return (0, "") if all(m in self.modules for m in wanted) else (1, "")
        if argv[1:4] == ["-m", "pip", "show"]:
            names = [a for a in argv[4:] if not a.startswith("-")]
            return (0, "") if all(n.lower() in self.dists for n in names) else (1, "")
        if argv[1:4] == ["-m", "pip", "install"]:
            args = argv[4:]
            if "-r" in args:
                for n in requirement_names(args[args.index("-r") + 1]):
                    self.dists.add(n.lower())
            for a in args:
                if a.startswith("torch=="):
                    self.modules.add("torch")
                elif a.startswith("torchvision=="):
                    self.modules.add("torchvision")
                elif a.startswith("huggingface_hub"):
                    hub = Path(argv[0]).parent / "huggingface-cli"
                    hub.write_text("")
            return 0, ""
        return 1, ""

    def _git(self, argv: List[str]):
        url, dest = argv[-2], Path(argv[-1])
        if url in self.clone_fail:
            return 128, ""
        dest.mkdir(parents=True)
        if dest.name == "ComfyUI":
            (dest / "main.py").write_text("print('comfy')\n")
            (dest / "requirements.txt").write_text(COMFY_REQUIREMENTS)
        return 0, ""

    def _hub(self, argv: List[str], env: Dict[str, str]):
        token = env.get("HF_TOKEN", "")
        if argv[1] == "whoami":
            self.logins.append(token)
            return (0, "") if self.login_ok else (1, "")
        if argv[1] == "download":
            filename = argv[3]
            dest = Path(argv[argv.index("--local-dir") + 1])
            self.download_tokens.append(token)
            if filename in self.download_fail:
                return 1, ""
            (dest / filename).write_bytes(b"weights")
            return 0, ""
        return 1, ""


@pytest.fixture
def world(tmp_path, monkeypatch) -> FakeWorld:
    w = FakeWorld(tmp_path)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(command.subprocess, "run", w.run)
    monkeypatch.setattr(command.shutil, "which", w.which)
    monkeypatch.setattr(command.os, "execve", w.execve)
    monkeypatch.setattr("comfy_provisioner.lib.pkg.os.geteuid", lambda: 0)
    return w


@pytest.fixture(autouse=True)
def _reset_logging():
    root = logging.getLogger()
    before = list(root.handlers)
    level = root.level
    yield
    for h in list(root.handlers):
        if h not in before:
            root.removeHandler(h)
            h.close()
    root.setLevel(level)
    for attr in ("_comfy_provision_configured", "_comfy_provision_log_path"):
        if hasattr(root, attr):
            delattr(root, attr)

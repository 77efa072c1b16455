from __future__ import annotations

import json
from pathlib import Path

import pytest
import yaml

from comfy_provisioner import main as main_mod
from comfy_provisioner.config import DEFAULTS
from comfy_provisioner.run_report import save_report

from .conftest import Execed


def _read_json(path: Path) -> dict:
    return json.loads(path.read_text(encoding="utf-8"))


@pytest.fixture
def environ(world, monkeypatch):
    for k in DEFAULTS:
        monkeypatch.delenv(k, raising=False)
    for k, v in world.environ(HF_TOKEN="hf_valid").items():
        monkeypatch.setenv(k, v)
    return world


def test_scenario_empty_workspace_to_launch(environ):
    world = environ

    with pytest.raises(Execed) as ei:
        main_mod.run(env_file=None)

    models = world.workspace / "ComfyUI" / "models"
    for rel in (
        "diffusion_models/flux1-dev.safetensors",
        "text_encoders/clip_l.safetensors",
        "text_encoders/t5xxl_fp16.safetensors",
        "vae/ae.safetensors",
    ):
        assert (models / rel).is_file()
    assert ei.value.argv[ei.value.argv.index("--port") + 1] == "8188"

    report = _read_json(world.workspace / ".provisioner" / "last_run.json")
    assert report["phase"] == "ready"
    assert report["config"]["HF_TOKEN"] == "***"
    assert "hf_valid" not in json.dumps(report)
    assert "hf_valid" not in (world.workspace / "comfy-provision.log").read_text()


def test_env_file_is_read_but_environment_wins(environ, tmp_path, monkeypatch):
    env_file = tmp_path / ".env"
    env_file.write_text("COMFY_PORT=9000\nCUDA_TAG=cu118\n")
    monkeypatch.setenv("COMFY_PORT", "9100")

    ctx = main_mod.run(env_file=str(env_file), launch=False)

    assert ctx.config.port == 9100
    assert ctx.config.cuda_tag == "cu118"
    assert environ.calls_matching("whl/cu118")


def test_main_no_launch_exit_code(environ):
    assert main_mod.main(["--no-launch", "--env-file", "missing.env"]) == 0


def test_main_reports_failing_stage(environ, caplog):
    environ.clone_fail.add("https://github.com/comfyanonymous/ComfyUI.git")

    assert main_mod.main(["--no-launch"]) == 1
    assert "Stage 50_clone_comfyui failed" in caplog.text

    report = _read_json(environ.workspace / ".provisioner" / "last_run.json")
    assert report["phase"] == "failed"
    assert report["error"]["step"] == "50_clone_comfyui"
    assert report["error"]["kind"] == "SourceFetchError"


def test_main_config_error_exit_code(environ, monkeypatch):
    monkeypatch.setenv("COMFY_PORT", "eighty")

    assert main_mod.main(["--no-launch"]) == 1
    assert environ.calls == []


def test_main_check(environ, capsys):
    assert main_mod.main(["--check"]) == 0

    out = capsys.readouterr().out
    assert "todo  10_system_packages" in out
    assert environ.mutating_calls() == []


def test_yaml_report_by_extension(tmp_path):
    path = tmp_path / "report.yaml"
    save_report(str(path), {"phase": "ready", "ran_steps": ["10_system_packages"]})

    assert yaml.safe_load(path.read_text()) == {"phase": "ready", "ran_steps": ["10_system_packages"]}

from __future__ import annotations

import pytest

from comfy_provisioner.config import DEFAULTS, load_config, read_override_file
from comfy_provisioner.errors import ConfigError


def test_zero_configuration_uses_defaults(tmp_path):
    cfg = load_config(str(tmp_path / "missing.env"), environ={})

    assert cfg.port == 8188
    assert cfg.python_version == "3.10"
    assert cfg.torch_index_url == "https://download.pytorch.org/whl/cu121"
    assert cfg.hf_token is None
    assert dict(cfg.raw) == DEFAULTS


def test_env_beats_file_beats_default(tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text("COMFY_PORT=9000\nTORCH_VERSION=2.5.1\nFLUX_FILE=flux1-dev-fp16.safetensors\n")

    cfg = load_config(str(env_file), environ={"COMFY_PORT": "9100"})

    assert cfg.port == 9100
    assert cfg.torch_version == "2.5.1"
    assert cfg.get("FLUX_FILE") == "flux1-dev-fp16.safetensors"
    assert cfg.branch_comfy == "master"


def test_unknown_keys_are_ignored(tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text("SOMETHING_ELSE=1\n")

    cfg = load_config(str(env_file), environ={"PATH": "/usr/bin", "HOME": "/root"})

    assert "SOMETHING_ELSE" not in cfg.raw
    assert "PATH" not in cfg.raw


def test_empty_values_fall_back_to_default(tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text("COMFY_PORT=\n")

    cfg = load_config(str(env_file), environ={"CUDA_TAG": ""})

    assert cfg.port == 8188
    assert cfg.cuda_tag == "cu121"


def test_yaml_override_file(tmp_path):
    env_file = tmp_path / "overrides.yaml"
    env_file.write_text("COMFY_PORT: 8200\nCUDA_TAG: cu124\n")

    cfg = load_config(str(env_file), environ={})

    assert cfg.port == 8200
    assert cfg.cuda_tag == "cu124"


def test_yaml_versions_stay_strings(tmp_path):
    env_file = tmp_path / "overrides.yaml"
    env_file.write_text("PYTHON_VERSION: 3.10\nTORCHVISION_VERSION: 0.20\nCOMFY_PORT: 8200\n")

    cfg = load_config(str(env_file), environ={})

    assert cfg.python_version == "3.10"
    assert cfg.get("TORCHVISION_VERSION") == "0.20"
    assert cfg.port == 8200


def test_yaml_override_must_be_flat(tmp_path):
    env_file = tmp_path / "overrides.yml"
    env_file.write_text("COMFY_PORT:\n  nested: 1\n")

    with pytest.raises(ConfigError):
        read_override_file(str(env_file))


@pytest.mark.parametrize(
    "key,value",
    [
        ("COMFY_PORT", "http"),
        ("COMFY_PORT", "70000"),
        ("PYTHON_VERSION", "three"),
        ("CUDA_TAG", "cuda12"),
        ("FLUX_REPO", "not a repo"),
        ("VAE_FILE", "../ae.safetensors"),
        ("ASSET_FAILURE_POLICY", "ignore"),
        ("LOG_LEVEL", "chatty"),
    ],
)
def test_malformed_values_raise_config_error(key, value):
    with pytest.raises(ConfigError):
        load_config(None, environ={key: value})


def test_config_is_immutable():
    cfg = load_config(None, environ={})

    with pytest.raises(TypeError):
        cfg.raw["COMFY_PORT"] = "1"  # type: ignore[index]


def test_redacted_hides_token():
    cfg = load_config(None, environ={"HF_TOKEN": "hf_secret"})

    assert cfg.hf_token == "hf_secret"
    assert cfg.redacted()["HF_TOKEN"] == "***"
    assert "hf_secret" not in str(cfg.redacted())


def test_assets_layout(tmp_path):
    cfg = load_config(None, environ={})
    assets = cfg.assets(str(tmp_path / "models"))

    assert [a.kind for a in assets] == ["unet", "clip", "t5", "vae"]
    assert assets[0].dest_path == tmp_path / "models" / "diffusion_models" / "flux1-dev.safetensors"
    assert assets[1].dest_dir == assets[2].dest_dir == str(tmp_path / "models" / "text_encoders")
    assert assets[3].dest_path.parent.name == "vae"

"""Tests for registry config loading."""

import pytest

from consolidator.core.config import RegistryConfig, load_config
from consolidator.core.errors import ConfigurationError


def _write(tmp_path, text, name="registry.yaml"):
    path = tmp_path / name
    path.write_text(text)
    return path


# ── Defaults ─────────────────────────────────────────────────────────


def test_defaults():
    cfg = load_config(env={})
    assert cfg.host == "doi.crossref.org"
    assert cfg.base_url == "http://doi.crossref.org"
    assert cfg.timeout_seconds == 5.0
    assert cfg.account_id is None
    assert cfg.password is None


# ── YAML ─────────────────────────────────────────────────────────────


def test_load_top_level_yaml(tmp_path):
    path = _write(
        tmp_path,
        "host: example.org\naccount_id: user\npassword: pw\ntimeout_seconds: 2.5\n",
    )
    cfg = load_config(path, env={})
    assert cfg.host == "example.org"
    assert cfg.account_id == "user"
    assert cfg.timeout_seconds == 2.5


def test_load_nested_registry_key(tmp_path):
    path = _write(tmp_path, "registry:\n  scheme: https\n  account_id: user\n")
    cfg = load_config(path, env={})
    assert cfg.base_url == "https://doi.crossref.org"
    assert cfg.account_id == "user"


def test_empty_yaml_gives_defaults(tmp_path):
    path = _write(tmp_path, "")
    assert load_config(path, env={}).host == "doi.crossref.org"


def test_non_mapping_yaml_rejected(tmp_path):
    path = _write(tmp_path, "- just\n- a list\n")
    with pytest.raises(ConfigurationError):
        load_config(path, env={})


def test_missing_file_rejected(tmp_path):
    with pytest.raises(ConfigurationError):
        load_config(tmp_path / "nope.yaml", env={})


def test_invalid_values_rejected(tmp_path):
    path = _write(tmp_path, "timeout_seconds: -1\n")
    with pytest.raises(ConfigurationError):
        load_config(path, env={})


# ── Environment Overrides ────────────────────────────────────────────


def test_env_overrides_file(tmp_path):
    path = _write(tmp_path, "account_id: from_file\npassword: pw\n")
    env = {
        "CONSOLIDATOR_REGISTRY_ID": "from_env",
        "CONSOLIDATOR_TIMEOUT_SECONDS": "0.5",
    }
    cfg = load_config(path, env=env)
    assert cfg.account_id == "from_env"
    assert cfg.password == "pw"
    assert cfg.timeout_seconds == 0.5


# ── Credentials ──────────────────────────────────────────────────────


def test_require_credentials():
    cfg = RegistryConfig(account_id="user", password="pw")
    assert cfg.require_credentials() == ("user", "pw")


def test_blank_credentials_are_missing():
    cfg = RegistryConfig(account_id="  ", password="pw")
    assert cfg.account_id is None
    with pytest.raises(ConfigurationError, match="account_id"):
        cfg.require_credentials()

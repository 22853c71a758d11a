"""Unit tests for signer configuration loading and selection."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from ocisign.errors import SignerConfigError
from ocisign.signer import KeySigner, PluginSigner, get_signer, load_signing_keys
from ocisign.signer.config import config_dir, plugin_dir, plugin_timeout


@pytest.fixture(autouse=True)
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the config directory at tmp_path."""
    monkeypatch.setenv("OCISIGN_CONFIG_DIR", str(tmp_path))
    monkeypatch.delenv("OCISIGN_PLUGIN_TIMEOUT", raising=False)
    return tmp_path


def _write_keys(directory: Path, data: dict[str, object]) -> Path:
    path = directory / "signingkeys.yaml"
    path.write_text(yaml.safe_dump(data))
    return path


class TestConfigDirectory:
    """Tests for config directory helpers."""

    @pytest.mark.requirement("signer-config")
    def test_environment_override(self, isolated_config: Path) -> None:
        """Test OCISIGN_CONFIG_DIR relocates config and plugins."""
        assert config_dir() == isolated_config
        assert plugin_dir() == isolated_config / "plugins"

    @pytest.mark.requirement("signer-config")
    def test_default_directory(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test the default lives under ~/.config."""
        monkeypatch.delenv("OCISIGN_CONFIG_DIR")
        assert config_dir() == Path.home() / ".config" / "ocisign"

    @pytest.mark.requirement("signer-config")
    def test_plugin_timeout(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test the plugin timeout default and override."""
        assert plugin_timeout() == 60.0
        monkeypatch.setenv("OCISIGN_PLUGIN_TIMEOUT", "2.5")
        assert plugin_timeout() == 2.5

    @pytest.mark.requirement("signer-config")
    @pytest.mark.parametrize("value", ["soon", "0", "-1"])
    def test_invalid_plugin_timeout(self, monkeypatch: pytest.MonkeyPatch, value: str) -> None:
        """Test non-positive or non-numeric timeouts are rejected."""
        monkeypatch.setenv("OCISIGN_PLUGIN_TIMEOUT", value)
        with pytest.raises(SignerConfigError):
            plugin_timeout()


class TestLoadSigningKeys:
    """Tests for load_signing_keys."""

    @pytest.mark.requirement("signer-config")
    def test_missing_file(self) -> None:
        """Test a missing file is an empty configuration."""
        config = load_signing_keys()
        assert config.default is None
        assert config.keys == []

    @pytest.mark.requirement("signer-config")
    def test_invalid_yaml(self, isolated_config: Path) -> None:
        """Test malformed YAML is reported."""
        (isolated_config / "signingkeys.yaml").write_text("keys: [\n")
        with pytest.raises(SignerConfigError, match="invalid YAML"):
            load_signing_keys()

    @pytest.mark.requirement("signer-config")
    def test_default_must_exist(self, isolated_config: Path) -> None:
        """Test a default naming an unknown key is rejected."""
        _write_keys(isolated_config, {"default": "gone", "keys": []})
        with pytest.raises(SignerConfigError, match="'gone' is not configured"):
            load_signing_keys()

    @pytest.mark.requirement("signer-config")
    def test_plugin_key_needs_id(self, isolated_config: Path) -> None:
        """Test plugin keys require an id."""
        _write_keys(isolated_config, {"keys": [{"name": "kms", "plugin": "kms"}]})
        with pytest.raises(SignerConfigError, match="id required"):
            load_signing_keys()


class TestGetSigner:
    """Tests for get_signer."""

    @pytest.mark.requirement("signer-select")
    def test_on_demand_plugin(self, isolated_config: Path) -> None:
        """Test --plugin with --id selects a plugin signer without config."""
        signer = get_signer(plugin="kms", key_id="arn:key/1")
        assert isinstance(signer, PluginSigner)
        assert signer.executable == isolated_config / "plugins" / "kms" / "ocisign-kms"

    @pytest.mark.requirement("signer-select")
    @pytest.mark.parametrize(
        ("kwargs", "reason"),
        [
            ({"plugin": "kms"}, "must be given together"),
            ({"key_id": "k"}, "must be given together"),
            ({"plugin": "kms", "key_id": "k", "key_name": "release"}, "cannot be combined"),
        ],
    )
    def test_conflicting_options(self, kwargs: dict[str, str], reason: str) -> None:
        """Test invalid option combinations are rejected."""
        with pytest.raises(SignerConfigError, match=reason):
            get_signer(**kwargs)

    @pytest.mark.requirement("signer-select")
    def test_default_local_key(self, isolated_config: Path, key_files: tuple[Path, Path]) -> None:
        """Test the default key is used when --key is absent."""
        key_path, cert_path = key_files
        _write_keys(
            isolated_config,
            {
                "default": "release",
                "keys": [{"name": "release", "key_path": str(key_path), "cert_path": str(cert_path)}],
            },
        )
        assert isinstance(get_signer(), KeySigner)

    @pytest.mark.requirement("signer-select")
    def test_named_plugin_key(self, isolated_config: Path) -> None:
        """Test --key can name a plugin key with its own config."""
        _write_keys(
            isolated_config,
            {
                "keys": [
                    {
                        "name": "kms",
                        "plugin": "kms",
                        "id": "arn:key/1",
                        "plugin_config": {"region": "eu"},
                    }
                ]
            },
        )
        signer = get_signer(key_name="kms")
        assert isinstance(signer, PluginSigner)
        assert signer.key_id == "arn:key/1"

    @pytest.mark.requirement("signer-select")
    def test_no_key(self) -> None:
        """Test no --key and no default is an error with remediation."""
        with pytest.raises(SignerConfigError, match="no default key configured") as exc_info:
            get_signer()
        assert "Remediation" in str(exc_info.value)
        assert exc_info.value.exit_code == 10

    @pytest.mark.requirement("signer-select")
    def test_unknown_key(self) -> None:
        """Test an unknown --key name is an error."""
        with pytest.raises(SignerConfigError, match="'nope' is not configured"):
            get_signer(key_name="nope")

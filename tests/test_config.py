"""
Settings Loading Tests
"""

import pytest

from hid_peq.base import ConfigurationError
from hid_peq.config import Settings, load_settings
from hid_peq.protocols import SUPPORTED_VENDOR_IDS


class TestSettings:
    """Tests for defaults and validation."""

    def test_defaults(self):
        settings = Settings()
        assert settings.write_delay == 0.03
        assert settings.read_delay == 0.05
        assert settings.band_read_delay == 0.04
        assert settings.read_timeout_ms == 100
        assert settings.vendor_ids == list(SUPPORTED_VENDOR_IDS)

    def test_negative_delay_rejected(self):
        with pytest.raises(ConfigurationError):
            Settings(write_delay=-0.1)

    def test_no_delay(self):
        settings = Settings.no_delay()
        assert settings.write_delay == settings.read_delay == settings.band_read_delay == 0.0


class TestLoadSettings:
    """Tests for reading hid-peq.toml."""

    def test_no_file_gives_defaults(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert load_settings() == Settings()

    def test_implicit_file_in_cwd(self, tmp_path, monkeypatch):
        (tmp_path / "hid-peq.toml").write_text("[timing]\nwrite_delay = 0.1\n")
        monkeypatch.chdir(tmp_path)
        assert load_settings().write_delay == 0.1

    def test_explicit_file(self, tmp_path):
        path = tmp_path / "dac.toml"
        path.write_text(
            "[timing]\nband_read_delay = 0.2\n\n"
            "[device]\nread_timeout_ms = 250\nvendor_ids = [0x2FC6]\n\n"
            "[profile]\ndevice_label = \"Dawn Pro\"\n"
        )

        settings = load_settings(path)

        assert settings.band_read_delay == 0.2
        assert settings.read_timeout_ms == 250
        assert settings.vendor_ids == [0x2FC6]
        assert settings.device_label == "Dawn Pro"
        assert settings.write_delay == 0.03

    def test_explicit_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            load_settings(tmp_path / "missing.toml")

    @pytest.mark.parametrize("text", [
        "[timing]\nwrite_delay = \n",
        "[audio]\nvolume = 3\n",
        "[timing]\nspeed = 1\n",
        "[timing]\nwrite_delay = -1.0\n",
    ])
    def test_invalid_files(self, tmp_path, text):
        path = tmp_path / "bad.toml"
        path.write_text(text)
        with pytest.raises(ConfigurationError):
            load_settings(path)

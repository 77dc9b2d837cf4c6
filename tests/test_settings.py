"""
Tests for settings
"""
import pytest
from pydantic import ValidationError

from config.settings import Settings, load_settings_from_file


class TestSettings:
    """Tests for Settings"""

    def test_defaults(self):
        settings = Settings(_env_file=None)

        assert settings.certificate_prefix == "HAL"
        assert settings.validity_years == 1
        assert settings.sequence_start == 1001
        assert settings.max_number_attempts == 5

    def test_verification_base_url_strips_slash(self):
        settings = Settings(_env_file=None, base_url="https://halal.example.org/")
        assert settings.verification_base_url == "https://halal.example.org"

    def test_cors_origins_list(self):
        settings = Settings(_env_file=None, cors_origins="https://a.example, https://b.example,")
        assert settings.cors_origins_list == ["https://a.example", "https://b.example"]

    @pytest.mark.parametrize("prefix", ["hal", "HAL1", ""])
    def test_invalid_prefix(self, prefix):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, certificate_prefix=prefix)

    @pytest.mark.parametrize("field", ["validity_years", "sequence_start", "max_number_attempts"])
    def test_non_positive_numbers(self, field):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, **{field: 0})

    def test_log_level_normalized(self):
        assert Settings(_env_file=None, log_level="debug").log_level == "DEBUG"
        with pytest.raises(ValidationError):
            Settings(_env_file=None, log_level="chatty")

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("CERTIFICATE_PREFIX", "HCA")
        monkeypatch.setenv("API_KEY", "secret")

        settings = Settings(_env_file=None)

        assert settings.certificate_prefix == "HCA"
        assert settings.api_key == "secret"

    def test_load_from_file(self, tmp_path):
        env_file = tmp_path / "halal.env"
        env_file.write_text("BASE_URL=https://verify.example.org\nVALIDITY_YEARS=2\n", encoding="utf-8")

        settings = load_settings_from_file(str(env_file))

        assert settings.base_url == "https://verify.example.org"
        assert settings.validity_years == 2

    def test_create_directories(self, tmp_path):
        settings = Settings(_env_file=None, log_file=tmp_path / "nested" / "logs" / "api.log")
        settings.create_directories()
        assert (tmp_path / "nested" / "logs").is_dir()

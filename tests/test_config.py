"""Tests for configuration loading and startup validation."""
from datetime import timedelta

import pytest

from config import Config
from errors import ConfigurationError


@pytest.fixture
def clean_env(monkeypatch):
    for name in (
        "SEALDROP_ENV",
        "SEALDROP_DEDUPE_PEPPER",
        "SEALDROP_ALLOW_UNPEPPERED_DEDUPE",
        "SEALDROP_KDF_ITERATIONS",
        "SEALDROP_EXPIRY_HOURS",
        "SEALDROP_DATABASE_URL",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestConfig:
    def test_defaults(self, clean_env):
        cfg = Config()
        assert cfg.expiry == timedelta(hours=48)
        assert cfg.kdf_params.iterations == 310000
        assert cfg.kdf_params.algorithm == "pbkdf2-sha256"
        assert cfg.MAX_CONTENT_BYTES == 200 * 1024
        assert not cfg.is_production

    def test_env_overrides(self, clean_env):
        clean_env.setenv("SEALDROP_DEDUPE_PEPPER", "pepper")
        clean_env.setenv("SEALDROP_EXPIRY_HOURS", "24")
        clean_env.setenv("SEALDROP_KDF_ITERATIONS", "400000")
        cfg = Config()
        assert cfg.pepper_bytes == b"pepper"
        assert cfg.expiry == timedelta(hours=24)
        assert cfg.kdf_params.iterations == 400000
        cfg.validate()

    def test_default_database_url(self, clean_env, tmp_path):
        cfg = Config(STORAGE_DIR=tmp_path / "data")
        assert cfg.database_url == f"sqlite:///{tmp_path / 'data' / 'documents.db'}"
        assert (tmp_path / "data").is_dir()


class TestValidate:
    def test_missing_pepper_fails_loud(self, clean_env):
        with pytest.raises(ConfigurationError):
            Config().validate()

    def test_unpeppered_requires_flag(self, clean_env):
        clean_env.setenv("SEALDROP_ALLOW_UNPEPPERED_DEDUPE", "true")
        Config().validate()

    def test_unpeppered_never_in_production(self, clean_env):
        clean_env.setenv("SEALDROP_ALLOW_UNPEPPERED_DEDUPE", "true")
        clean_env.setenv("SEALDROP_ENV", "production")
        with pytest.raises(ConfigurationError):
            Config().validate()

    def test_weak_kdf_rejected(self, clean_env):
        with pytest.raises(ConfigurationError):
            Config(DEDUPE_PEPPER="p", KDF_ITERATIONS=100_000).validate()

    def test_non_positive_expiry_rejected(self, clean_env):
        with pytest.raises(ConfigurationError):
            Config(DEDUPE_PEPPER="p", EXPIRY_HOURS=0).validate()

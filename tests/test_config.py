"""Tests for environment-driven settings."""

from pathlib import Path

from campaign_readiness import config
from campaign_readiness.config import Settings, load_settings

ENV_VARS = (
    "SCAN_STORE_DIR",
    "SCAN_NO_CACHE_SAMPLES",
    "SCAN_CACHE_SAMPLES",
    "SCAN_TIMEOUT_MS",
    "SCANNER_REGION",
    "SCAN_USER_AGENT",
    "INBOUND_DOMAIN",
    "CRS_CORS_ORIGINS",
    "LOG_LEVEL",
)


def _clear(monkeypatch, tmp_path):
    for name in ENV_VARS:
        # setenv first so teardown also removes anything load_dotenv adds.
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    # Keep a developer's .env out of the picture.
    monkeypatch.setattr(config, "_PROJECT_ROOT", tmp_path)


def test_defaults(monkeypatch, tmp_path):
    _clear(monkeypatch, tmp_path)
    settings = load_settings()
    assert settings == Settings()


def test_env_overrides(monkeypatch, tmp_path):
    _clear(monkeypatch, tmp_path)
    monkeypatch.setenv("SCAN_STORE_DIR", str(tmp_path / "store"))
    monkeypatch.setenv("SCAN_NO_CACHE_SAMPLES", "5")
    monkeypatch.setenv("SCAN_CACHE_SAMPLES", "-2")
    monkeypatch.setenv("SCAN_TIMEOUT_MS", "10")
    monkeypatch.setenv("INBOUND_DOMAIN", " Inbound.Example.com ")
    monkeypatch.setenv("CRS_CORS_ORIGINS", "https://a.example, https://b.example,")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    settings = load_settings()
    assert settings.store_dir == Path(tmp_path / "store").resolve()
    assert settings.no_cache_samples == 5
    assert settings.cache_samples == 0
    assert settings.timeout_ms == 1000
    assert settings.inbound_domain == "inbound.example.com"
    assert settings.cors_origins == ["https://a.example", "https://b.example"]
    assert settings.log_level == "DEBUG"


def test_bad_numbers_fall_back(monkeypatch, tmp_path):
    _clear(monkeypatch, tmp_path)
    monkeypatch.setenv("SCAN_CACHE_SAMPLES", "lots")
    assert load_settings().cache_samples == 3


def test_dotenv_file(monkeypatch, tmp_path):
    _clear(monkeypatch, tmp_path)
    (tmp_path / ".env").write_text("SCANNER_REGION=eu-west\n", encoding="utf-8")
    assert load_settings().scanner_region == "eu-west"

"""Tests for environment-driven settings."""

from reflex_directory_grid.config import DirectorySettings


def test_defaults():
    settings = DirectorySettings(_env_file=None)
    assert settings.debounce_seconds == 0.3
    assert settings.default_page_size == 10
    assert settings.import_max_bytes == 10 * 1024 * 1024
    assert settings.import_concurrency == 1


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("DIRECTORY_API_URL", "https://crm.example.org/api")
    monkeypatch.setenv("DIRECTORY_DEBOUNCE_SECONDS", "0.5")
    monkeypatch.setenv("DIRECTORY_DUPLICATE_CODES", '["E_DUP"]')
    settings = DirectorySettings(_env_file=None)
    assert settings.api_url == "https://crm.example.org/api"
    assert settings.debounce_seconds == 0.5
    assert settings.duplicate_codes == ["E_DUP"]

"""
Tests for configuration management.

Tests the Config class and configuration loading from files and environment variables.
"""

from pathlib import Path

import pytest

from fieldcollect.config import Config
from fieldcollect.database import DEFAULT_DB_URL


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Remove fieldcollect environment overrides for every test."""
    for name in (
        'FIELDCOLLECT_DATABASE_URL',
        'FIELDCOLLECT_DB_BUSY_TIMEOUT',
        'FIELDCOLLECT_DB_ECHO',
        'FIELDCOLLECT_LOAD_TIMEOUT',
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.ini"
    path.write_text("""
[database]
url = sqlite+aiosqlite:////data/survey.db
busy_timeout = 12
echo = true

[loader]
timeout = 2.5
""")
    return path


class TestConfig:
    """Tests for Config class."""

    def test_default_config_path(self):
        config = Config()
        assert config.config_path == Path.home() / ".fieldcollect" / "config.ini"

    def test_missing_config_file_uses_defaults(self, tmp_path):
        config = Config(tmp_path / "nonexistent.ini")

        db_config = config.get_database_config()
        assert db_config['url'] == DEFAULT_DB_URL
        assert db_config['busy_timeout'] == 5.0
        assert db_config['echo'] is False
        assert config.get_loader_config()['timeout'] is None
        assert config.sections() == []

    def test_config_file_parsing(self, config_file):
        config = Config(config_file)

        db_config = config.get_database_config()
        assert db_config['url'] == 'sqlite+aiosqlite:////data/survey.db'
        assert db_config['busy_timeout'] == 12.0
        assert db_config['echo'] is True
        assert config.get_loader_config()['timeout'] == 2.5
        assert config.has_section('loader')

    def test_environment_variable_override(self, config_file, monkeypatch):
        monkeypatch.setenv('FIELDCOLLECT_DATABASE_URL', 'sqlite+aiosqlite:///:memory:')
        monkeypatch.setenv('FIELDCOLLECT_DB_BUSY_TIMEOUT', '1')
        monkeypatch.setenv('FIELDCOLLECT_DB_ECHO', 'false')
        monkeypatch.setenv('FIELDCOLLECT_LOAD_TIMEOUT', '9')

        config = Config(config_file)

        db_config = config.get_database_config()
        assert db_config['url'] == 'sqlite+aiosqlite:///:memory:'
        assert db_config['busy_timeout'] == 1.0
        assert db_config['echo'] is False
        assert config.get_loader_config()['timeout'] == 9.0

    def test_zero_timeout_disables_timeout(self, tmp_path):
        path = tmp_path / "config.ini"
        path.write_text("[loader]\ntimeout = 0\n")

        assert Config(path).get_loader_config()['timeout'] is None

    def test_get_with_fallback(self, config_file):
        config = Config(config_file)

        assert config.get('database', 'busy_timeout') == '12'
        assert config.get('missing', 'key', fallback='x') == 'x'

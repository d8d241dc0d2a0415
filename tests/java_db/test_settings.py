"""Tests for typed settings, environment overrides, and database selection."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from JavaDB.errors import UserConfigError
from JavaDB.settings import (
    MAVEN_CENTRAL_URL,
    DatabaseConfig,
    HttpSettings,
    JavaDBSettings,
    LoggingSettings,
    MysqlConfig,
    SqliteConfig,
    default_cache_dir,
    get_settings,
    reset_settings,
    resolve_database_config,
)


class TestDefaults:
    def test_defaults(self):
        settings = JavaDBSettings()
        assert settings.http.repository_url == MAVEN_CENTRAL_URL
        assert settings.crawl.limit == 1000
        assert settings.crawl.tolerance == 0.0
        assert settings.crawl.cache_dir == default_cache_dir()
        assert settings.build.batch_size == 1000
        assert settings.build.update_interval_hours == 72
        assert settings.logging.level == "INFO"

    def test_default_cache_dir_is_app_specific(self):
        assert "java-db" in str(default_cache_dir())

    def test_settings_are_frozen(self):
        with pytest.raises(ValidationError):
            JavaDBSettings().crawl.limit = 5


class TestEnvironment:
    def test_nested_overrides(self, monkeypatch):
        monkeypatch.setenv("JAVADB_HTTP__MAX_ATTEMPTS", "3")
        monkeypatch.setenv("JAVADB_CRAWL__TOLERANCE", "0.25")
        monkeypatch.setenv("JAVADB_LOGGING__LEVEL", "debug")
        settings = get_settings()
        assert settings.http.max_attempts == 3
        assert settings.crawl.tolerance == 0.25
        assert settings.logging.level == "DEBUG"

    def test_singleton_until_reset(self, monkeypatch):
        first = get_settings()
        assert get_settings() is first
        monkeypatch.setenv("JAVADB_CRAWL__LIMIT", "5")
        assert get_settings().crawl.limit == 1000
        reset_settings()
        assert get_settings().crawl.limit == 5

    def test_invalid_override_is_config_error(self, monkeypatch):
        monkeypatch.setenv("JAVADB_CRAWL__LIMIT", "0")
        with pytest.raises(UserConfigError):
            get_settings()


class TestValidators:
    def test_repository_url_gets_trailing_slash(self):
        assert HttpSettings(repository_url="https://m.test/x").repository_url == "https://m.test/x/"

    def test_repository_url_must_be_http(self):
        with pytest.raises(ValidationError):
            HttpSettings(repository_url="file:///srv/m2")

    def test_logging_level_validation(self):
        assert LoggingSettings(level="warning").level_int() == 30
        with pytest.raises(ValidationError):
            LoggingSettings(level="TRACE")


class TestDatabaseSelection:
    def test_sqlite(self, tmp_path):
        config = resolve_database_config(
            sqlite=True, db_path=tmp_path, mysql=False, db_connect_url=None
        )
        assert config.backend == "sqlite"
        assert config.sqlite.db_path == tmp_path

    def test_mysql_url_normalised_to_pymysql(self):
        config = resolve_database_config(
            sqlite=False, db_path=None, mysql=True, db_connect_url="mysql://u:p@db:3306/javadb"
        )
        assert config.backend == "mysql"
        assert config.mysql.connect_url == "mysql+pymysql://u:p@db:3306/javadb"

    @pytest.mark.parametrize(
        "kwargs",
        [
            dict(sqlite=False, db_path=None, mysql=False, db_connect_url=None),
            dict(sqlite=True, db_path=Path("x"), mysql=True, db_connect_url="mysql://h/db"),
            dict(sqlite=True, db_path=None, mysql=False, db_connect_url=None),
            dict(sqlite=False, db_path=None, mysql=True, db_connect_url=None),
            dict(sqlite=False, db_path=Path("x"), mysql=False, db_connect_url=None),
            dict(sqlite=False, db_path=None, mysql=True, db_connect_url="mysql://host"),
            dict(sqlite=False, db_path=None, mysql=True, db_connect_url="sqlite:///x.db"),
            dict(sqlite=False, db_path=None, mysql=True, db_connect_url="::not a url::"),
        ],
    )
    def test_invalid_combinations(self, kwargs):
        with pytest.raises(UserConfigError):
            resolve_database_config(**kwargs)

    def test_database_config_requires_exactly_one(self, tmp_path):
        with pytest.raises(ValidationError):
            DatabaseConfig()
        with pytest.raises(ValidationError):
            DatabaseConfig(
                sqlite=SqliteConfig(db_path=tmp_path),
                mysql=MysqlConfig(connect_url="mysql://h/db"),
            )

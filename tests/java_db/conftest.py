"""Fixtures for the JavaDB test suite: settings isolation and storage engines."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterator

import pytest

from JavaDB.db import MysqlDB, SqliteDB
from JavaDB.db.mysql import drop_tables
from JavaDB.settings import reset_settings
from tests.java_db.support import MYSQL_URL_ENV


@pytest.fixture(autouse=True)
def _isolate_settings(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    for key in list(os.environ):
        if key.startswith("JAVADB_") and key != MYSQL_URL_ENV:
            monkeypatch.delenv(key, raising=False)
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def sqlite_db(tmp_path: Path) -> Iterator[SqliteDB]:
    db = SqliteDB(tmp_path / "java-db.sqlite")
    db.init()
    yield db
    db.close()


@pytest.fixture
def mysql_url() -> str:
    url = os.environ.get(MYSQL_URL_ENV)
    if not url:
        pytest.skip(f"{MYSQL_URL_ENV} not set")
    if url.startswith("mysql://"):
        url = "mysql+pymysql://" + url[len("mysql://") :]
    return url


@pytest.fixture(params=["sqlite", pytest.param("mysql", marks=pytest.mark.mysql)])
def engine(request: pytest.FixtureRequest, tmp_path: Path) -> Iterator[object]:
    """Each storage engine with a freshly created schema."""
    if request.param == "sqlite":
        db = SqliteDB(tmp_path / "java-db.sqlite")
    else:
        url = request.getfixturevalue("mysql_url")
        drop_tables(url)
        db = MysqlDB(url)
    db.init()
    yield db
    db.close()
    if request.param == "mysql":
        drop_tables(url)

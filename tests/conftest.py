"""Shared fixtures: a throwaway sandbox root and the objects built on it."""

import logging
from pathlib import Path

import pytest

from evernode_fm.app import create_app
from evernode_fm.services.config import FileManagerConfig
from evernode_fm.services.file_manager import FileManager
from evernode_fm.services.logging_setup import CORE_LOGGER_NAME
from evernode_fm.services.paths import PathResolver

PASSWORD = "s3cret"


@pytest.fixture(autouse=True)
def enable_log_propagation():
    """Ensure logs propagate to root so caplog can catch them."""
    logger = logging.getLogger(CORE_LOGGER_NAME)
    old_propagate = logger.propagate
    logger.propagate = True
    yield
    logger.propagate = old_propagate


@pytest.fixture
def root(tmp_path: Path) -> Path:
    r = tmp_path / "root"
    r.mkdir()
    return r.resolve()


@pytest.fixture
def config(root: Path) -> FileManagerConfig:
    return FileManagerConfig(root=str(root), password=PASSWORD, max_upload_mb=1)


@pytest.fixture
def resolver(root: Path) -> PathResolver:
    return PathResolver(str(root))


@pytest.fixture
def manager(config: FileManagerConfig) -> FileManager:
    return FileManager(config)


@pytest.fixture
def client(config: FileManagerConfig):
    app = create_app(config)
    app.config["TESTING"] = True
    with app.test_client() as c:
        yield c


@pytest.fixture
def auth() -> dict:
    return {"X-Auth": PASSWORD}


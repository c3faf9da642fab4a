import io
import os
import sys
import zipfile
from typing import Dict, Union

import pytest

DATA_DIR = os.path.join(os.path.dirname(__file__), "data")

TEST_AWS_ACCESS_KEY_ID = "test"
TEST_AWS_SECRET_ACCESS_KEY = "test"
TEST_AWS_REGION_NAME = "us-east-1"


@pytest.fixture(autouse=True)
def set_boto_test_credentials_and_region(monkeypatch):
    """
    Automatically sets the default credentials and region for all unit tests.
    """
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", TEST_AWS_ACCESS_KEY_ID)
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", TEST_AWS_SECRET_ACCESS_KEY)
    monkeypatch.setenv("AWS_DEFAULT_REGION", TEST_AWS_REGION_NAME)


def create_zip(files: Dict[str, Union[str, bytes]], mode: int = 0o644) -> bytes:
    """Creates an in-memory zip archive from the given mapping of archive paths to contents."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for name, content in files.items():
            info = zipfile.ZipInfo(name)
            info.external_attr = mode << 16
            archive.writestr(info, content)
    return buffer.getvalue()


def load_data_file(name: str) -> str:
    with open(os.path.join(DATA_DIR, name)) as f:
        return f.read()


@pytest.fixture
def fake_lambda_source() -> str:
    return load_data_file("fake_lambda.py")


@pytest.fixture
def isolated_imports(monkeypatch):
    """Restores ``sys.path`` and removes the modules that were loaded from outside of it during the test."""
    original_paths = tuple(os.path.abspath(path) for path in sys.path if path)
    monkeypatch.setattr(sys, "path", list(sys.path))
    modules = set(sys.modules)
    yield
    for name in set(sys.modules) - modules:
        module_file = getattr(sys.modules.get(name), "__file__", None)
        if module_file and not os.path.abspath(module_file).startswith(original_paths):
            sys.modules.pop(name, None)


@pytest.fixture
def restore_message_adapter_env(monkeypatch):
    from cumulus_ecs_task.constants import ENV_MESSAGE_ADAPTER_DIR

    # registers the variable with monkeypatch, so whatever the installer sets is undone afterwards
    monkeypatch.setenv(ENV_MESSAGE_ADAPTER_DIR, "")
    monkeypatch.delenv(ENV_MESSAGE_ADAPTER_DIR)


@pytest.fixture
def zip_archive():
    """Factory fixture building in-memory zip archives, see ``create_zip``."""
    return create_zip

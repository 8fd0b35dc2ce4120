import os
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from pytest_mock import MockFixture

from test.helpers import CONST_DATETIME_NOW

TEST_DIRECTORY = Path(os.path.dirname(os.path.realpath(__file__)))


@pytest.fixture
def datetime_now_value():
    """Return a fixed datetime for testing."""
    return CONST_DATETIME_NOW


@pytest.fixture(autouse=True)
def patch_datetime_now(request, mocker: MockFixture, datetime_now_value):
    """Mock datetime.now() of the purge orchestrator to return a fixed datetime for testing."""
    if "disable_patch_datetime_now" not in request.keywords:
        import registry_retention.retention.purge

        mocked_datetime = mocker.patch("registry_retention.retention.purge.datetime")
        mock_datetime_now = MagicMock(spec=datetime_now_value)
        mocked_datetime.now = mock_datetime_now
        mock_datetime_now.return_value = datetime_now_value


@pytest.fixture(scope="session")
def test_path():
    """Return the path to the test directory"""
    return TEST_DIRECTORY


@pytest.fixture
def retention_yaml(tmp_path):
    """Return a function writing a retention.yaml file into a temporary directory."""

    def _write(content: str, filename: str = "retention.yaml") -> Path:
        path = tmp_path / filename
        path.write_text(content)
        return path

    return _write

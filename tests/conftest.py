import pytest

from sentinel.settings import settings


@pytest.fixture
def data_dir(tmp_path):
    """Points settings.data_dir and log_dir at a temporary directory for the test."""
    original_data_dir, original_log_dir = settings.data_dir, settings.log_dir
    settings.data_dir = tmp_path
    settings.log_dir = tmp_path / "logs"
    yield tmp_path
    settings.data_dir, settings.log_dir = original_data_dir, original_log_dir

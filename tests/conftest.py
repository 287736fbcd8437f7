"""Shared fixtures."""

import pytest

from mab_integration_demo.batch import get_sample_batch_data
from mab_integration_demo.config import Config, DatabaseConfig
from mab_integration_demo.database import create_db_engine


@pytest.fixture(scope="session")
def small_batch():
    """Sample batch cut to two hours of historian data at 10 minute steps."""
    return get_sample_batch_data(seed=342, duration_hours=2, dcs_interval_seconds=600)


@pytest.fixture
def engine():
    """Fresh in-memory database."""
    engine = create_db_engine(DatabaseConfig(url="sqlite://"))
    yield engine
    engine.dispose()


@pytest.fixture
def small_config():
    config = Config.default()
    config.database.url = "sqlite://"
    config.batch.duration_hours = 2
    config.batch.dcs_interval_s = 600
    return config

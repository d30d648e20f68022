"""Shared fixtures: an in-memory database with the full schema."""

import pytest

from sandwich_ops.admin import AdminService
from sandwich_ops.config import OpsConfig, set_config
from sandwich_ops.database import create_db_engine, create_session_factory, init_db
from sandwich_ops.entities import OpsStorage, build_registry
from sandwich_ops.soft_delete import SoftDeleteService


@pytest.fixture(autouse=True)
def reset_config():
    """Keep the global configuration from leaking between tests."""
    set_config(None)
    yield
    set_config(None)


@pytest.fixture
def config():
    """Test configuration on an in-memory database."""
    return OpsConfig(database_url="sqlite://", environment="test")


@pytest.fixture
def engine(config):
    """Create an in-memory SQLite engine with every table."""
    engine = create_db_engine(config.database_url)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def registry():
    return build_registry()


@pytest.fixture
def service(session_factory, registry, config):
    """Create a soft delete service instance."""
    return SoftDeleteService(session_factory, registry, config=config)


@pytest.fixture
def storage(service):
    return OpsStorage(service)


@pytest.fixture
def admin(service, storage):
    return AdminService(service, storage)


@pytest.fixture
def host(storage):
    """A live host with no collections."""
    return storage.create_record("hosts", name="Downtown Church", address="1 Main St")

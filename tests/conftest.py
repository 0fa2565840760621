import pytest

from app import create_app
from app.database import get_session, create_all, drop_all
from config import TestingConfig
from tests.factories import make_tenant, make_warehouse, make_product


@pytest.fixture(scope='session')
def app(tmp_path_factory):
    """Create application instance for testing (SQLite file database)."""
    db_path = tmp_path_factory.mktemp('db') / 'stock.db'

    class Config(TestingConfig):
        SQLALCHEMY_DATABASE_URI = f'sqlite:///{db_path}'

    return create_app(Config)


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def session(app):
    """Fresh schema per test; yields the scoped database session."""
    create_all()
    session = get_session()
    yield session
    session.remove()
    drop_all()


@pytest.fixture(scope='function')
def tenant_id(session):
    return make_tenant(session, 'Tenant One')


@pytest.fixture(scope='function')
def other_tenant_id(session):
    return make_tenant(session, 'Tenant Two')


@pytest.fixture(scope='function')
def warehouse_id(session, tenant_id):
    return make_warehouse(session, tenant_id)


@pytest.fixture(scope='function')
def product_id(session, tenant_id):
    return make_product(session, tenant_id)


@pytest.fixture(scope='function')
def stock_key(tenant_id, warehouse_id, product_id):
    """(tenant_id, warehouse_id, product_id) of an empty position."""
    return tenant_id, warehouse_id, product_id

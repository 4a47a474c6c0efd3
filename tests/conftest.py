import pytest

from tagmark import create_app
from tagmark.config import TestConfig
from tagmark.extensions import db
from tagmark.services.ordering import clear_ordering_runtime


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        db.drop_all()
        db.create_all()
    clear_ordering_runtime()
    yield app
    clear_ordering_runtime()


@pytest.fixture
def client(app):
    return app.test_client()

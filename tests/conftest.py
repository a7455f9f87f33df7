import pytest

from app import create_app
from catalog import Catalog
from config import TestingConfig
from models import db


@pytest.fixture
def app(tmp_path):
    app = create_app(TestingConfig, overrides={"UPLOAD_FOLDER": str(tmp_path / "uploads")})
    yield app
    with app.app_context():
        db.session.remove()
        db.engine.dispose()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def catalog(app):
    with app.app_context():
        yield Catalog(db.session)


@pytest.fixture
def admin_client(app):
    client = app.test_client()
    resp = client.post(
        "/admin/login",
        data={"username": TestingConfig.ADMIN_USERNAME, "password": TestingConfig.ADMIN_PASSWORD},
    )
    assert resp.status_code == 302
    return client

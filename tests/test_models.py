import pytest
from sqlalchemy.exc import IntegrityError

import models
from app import create_app
from config import TestingConfig
from models import Category, Product, User, db, seed_defaults, slugify


def test_slugify():
    assert slugify("Électronique") == "electronique"
    assert slugify("  Red   Lamp!! ") == "red-lamp"
    assert slugify("Café & Thé / 2024") == "cafe-the-2024"
    assert slugify("!!!") == ""


def test_seed_on_empty_database(app):
    with app.app_context():
        assert User.query.count() == 1
        assert Category.query.count() == 6
        slugs = sorted(c.slug for c in Category.query.all())
        assert slugs == ["accessoires", "beaute", "electronique", "maison", "supermarche", "vetements"]


def test_seed_is_idempotent(app):
    with app.app_context():
        before = [(c.id, c.name, c.slug) for c in Category.query.order_by(Category.id)]
        seed_defaults(TestingConfig.ADMIN_USERNAME, "another-password")
        seed_defaults(TestingConfig.ADMIN_USERNAME, TestingConfig.ADMIN_PASSWORD)
        after = [(c.id, c.name, c.slug) for c in Category.query.order_by(Category.id)]
        assert before == after
        assert User.query.count() == 1


def test_admin_password_is_hashed(app):
    with app.app_context():
        user = User.get_by_username(TestingConfig.ADMIN_USERNAME)
        assert user.password_hash != TestingConfig.ADMIN_PASSWORD


def test_category_seed_is_all_or_nothing(app, monkeypatch):
    with app.app_context():
        Category.query.delete()
        db.session.commit()

        monkeypatch.setattr(models, "DEFAULT_CATEGORIES", ["Maison", "Beauté", None])
        with pytest.raises(IntegrityError):
            seed_defaults(TestingConfig.ADMIN_USERNAME, TestingConfig.ADMIN_PASSWORD)
        assert Category.query.count() == 0


def test_seed_failure_stops_startup(tmp_path, monkeypatch):
    monkeypatch.setattr(models, "DEFAULT_CATEGORIES", [None])
    with pytest.raises(IntegrityError):
        create_app(TestingConfig, overrides={"UPLOAD_FOLDER": str(tmp_path)})


def test_deleting_category_uncategorises_products(app, catalog):
    maison = catalog.get_category_by_slug("maison")
    slug = catalog.create_product("Sofa", price=90000, category_id=maison.id)

    db.session.delete(maison)
    db.session.commit()
    db.session.expire_all()

    product = catalog.get_product_by_slug(slug)
    assert product is not None
    assert product.category_id is None
    assert Product.query.count() == 1

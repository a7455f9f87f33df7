import db_manager
from catalog import Catalog
from config import TestingConfig
from models import User, db


def test_list_users(app, capsys):
    db_manager.list_users(app)
    out = capsys.readouterr().out
    assert TestingConfig.ADMIN_USERNAME in out
    assert "Total users: 1" in out


def test_list_products(app, capsys):
    db_manager.list_products(app)
    assert "No products found" in capsys.readouterr().out

    with app.app_context():
        Catalog(db.session).create_product("Red Lamp", price=1500)
    db_manager.list_products(app)
    out = capsys.readouterr().out
    assert "red-lamp-" in out
    assert "Total products: 1" in out


def test_create_user(app, monkeypatch, capsys):
    answers = iter(["manager", "pa55word"])
    monkeypatch.setattr("builtins.input", lambda prompt="": next(answers))
    db_manager.create_user(app)
    assert "Success" in capsys.readouterr().out
    with app.app_context():
        assert User.get_by_username("manager") is not None


def test_create_user_rejects_duplicate(app, monkeypatch, capsys):
    answers = iter([TestingConfig.ADMIN_USERNAME, "whatever"])
    monkeypatch.setattr("builtins.input", lambda prompt="": next(answers))
    db_manager.create_user(app)
    assert "already exists" in capsys.readouterr().out


def test_reset_db_can_be_cancelled(app, monkeypatch, capsys):
    with app.app_context():
        Catalog(db.session).create_product("Red Lamp", price=1500)
    monkeypatch.setattr("builtins.input", lambda prompt="": "n")
    db_manager.reset_db(app)
    assert "cancelled" in capsys.readouterr().out
    with app.app_context():
        assert Catalog(db.session).count_products() == 1


def test_reset_db(app, monkeypatch):
    with app.app_context():
        Catalog(db.session).create_product("Red Lamp", price=1500)
    monkeypatch.setattr("builtins.input", lambda prompt="": "y")
    db_manager.reset_db(app)
    with app.app_context():
        catalog = Catalog(db.session)
        assert catalog.count_products() == 0
        assert len(catalog.list_categories()) == 6
        assert User.query.count() == 1


def test_help_and_unknown_command(capsys):
    db_manager.main([])
    assert "Usage" in capsys.readouterr().out
    db_manager.main(["bogus"])
    out = capsys.readouterr().out
    assert "Unknown command: bogus" in out

"""Database schema and start-up seed data for Parfaite Shop."""

import logging
import re
import sqlite3
import unicodedata
from datetime import datetime

from flask_login import UserMixin
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.security import generate_password_hash

logger = logging.getLogger(__name__)

db = SQLAlchemy()

DEFAULT_CATEGORIES = [
    "Électronique",
    "Vêtements",
    "Beauté",
    "Maison",
    "Accessoires",
    "Supermarché",
]


@event.listens_for(Engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # SQLite ignores FOREIGN KEY clauses unless asked per connection
    if isinstance(dbapi_connection, sqlite3.Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def slugify(text):
    """Lower-case ASCII slug: accents folded, non-alphanumeric runs become '-'.

    Returns an empty string when nothing alphanumeric survives.
    """
    norm = unicodedata.normalize("NFKD", (text or "").strip())
    chars = []
    for ch in norm:
        if unicodedata.category(ch) == "Mn":
            continue
        chars.append(ch if ord(ch) < 128 else "-")
    s = "".join(chars).lower()
    s = re.sub(r"[^a-z0-9]+", "-", s)
    return s.strip("-")


class User(UserMixin, db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)

    def __repr__(self):
        return f"<User {self.username}>"

    @staticmethod
    def get(user_id):
        return db.session.get(User, int(user_id))

    @staticmethod
    def get_by_username(username):
        return User.query.filter_by(username=username).first()


class Category(db.Model):
    __tablename__ = "categories"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    slug = db.Column(db.String(140), unique=True, nullable=False)

    def __repr__(self):
        return f"<Category {self.name}>"


class Product(db.Model):
    __tablename__ = "products"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    slug = db.Column(db.String(255), unique=True, nullable=False)
    description = db.Column(db.Text, nullable=True)
    price = db.Column(db.Integer, nullable=False)  # smallest currency unit
    image_path = db.Column(db.String(255), nullable=True)
    # Products outlive their category: the reference is nulled, never cascaded
    category_id = db.Column(
        db.Integer,
        db.ForeignKey("categories.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    category = db.relationship("Category", backref=db.backref("products", lazy=True, passive_deletes=True))

    def __repr__(self):
        return f"<Product {self.title}>"

    @property
    def category_name(self):
        return self.category.name if self.category else None

    @property
    def category_slug(self):
        return self.category.slug if self.category else None


def init_db():
    """Create missing tables. Existing tables are left untouched."""
    db.create_all()


def seed_defaults(admin_username, admin_password):
    """Insert the default admin and the category list if they are missing.

    Safe to call on every start-up. The category list is inserted in a single
    transaction; any failure rolls it back and is re-raised.
    """
    if User.get_by_username(admin_username) is None:
        db.session.add(
            User(username=admin_username, password_hash=generate_password_hash(admin_password))
        )
        try:
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            raise
        logger.info("Admin seed -> username: %s", admin_username)

    if db.session.query(Category.id).count() == 0:
        categories, used = [], set()
        for name in DEFAULT_CATEGORIES:
            base = slugify(name) or "category"
            slug, n = base, 2
            while slug in used:
                slug = f"{base}-{n}"
                n += 1
            used.add(slug)
            categories.append(Category(name=name, slug=slug))
        try:
            db.session.add_all(categories)
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            raise
        logger.info("Seeded %d default categories", len(DEFAULT_CATEGORIES))

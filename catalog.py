"""Catalog queries and admin mutations over an explicit SQLAlchemy session."""

import logging
import math
import time
from dataclasses import dataclass
from typing import List, Optional
from urllib.parse import quote

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import contains_eager
from werkzeug.security import check_password_hash

from models import Category, Product, User, slugify

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Identifiants invalides"
REQUIRED_FIELDS = "Titre et prix requis"

# Largest value SQLite stores in an INTEGER column
MAX_INTEGER = 2**63 - 1

# Attempts at committing a product before a slug collision is reported
SAVE_ATTEMPTS = 3

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


class CatalogError(Exception):
    """Base class for errors reported back to the requester."""


class ValidationError(CatalogError):
    pass


class NotFoundError(CatalogError):
    pass


class AuthError(CatalogError):
    def __init__(self, message=INVALID_CREDENTIALS):
        super().__init__(message)


@dataclass(frozen=True)
class Clause:
    column: str
    operator: str
    value: object


# Filterable columns and the operators understood by _apply_clauses
_COLUMNS = {
    "title": Product.title,
    "category_slug": Category.slug,
}
_OPERATORS = {
    "eq": lambda column, value: column == value,
    "icontains": lambda column, value: column.icontains(value, autoescape=True),
}


@dataclass
class ProductFilter:
    q: Optional[str] = None
    category_slug: Optional[str] = None
    limit: int = 24
    offset: int = 0

    def clauses(self) -> List[Clause]:
        clauses = []
        q = (self.q or "").strip()
        if q:
            clauses.append(Clause("title", "icontains", q))
        if self.category_slug:
            clauses.append(Clause("category_slug", "eq", self.category_slug))
        return clauses


def _apply_clauses(query, clauses):
    for clause in clauses:
        column = _COLUMNS[clause.column]
        query = query.filter(_OPERATORS[clause.operator](column, clause.value))
    return query


def total_pages(total: int, limit: int) -> int:
    """Number of pages needed for ``total`` rows, never less than one."""
    return max(math.ceil(total / limit), 1)


def whatsapp_link(number: str, title: str, share_url: str) -> str:
    message = f"Bonjour, je suis intéressé(e) par: {title} ({share_url})"
    # same unescaped set as JavaScript's encodeURIComponent
    text = quote(message, safe="-_.!~*'()")
    return f"https://wa.me/{number}?text={text}"


def _to_base36(n: int) -> str:
    out = ""
    while True:
        n, r = divmod(n, 36)
        out = _BASE36[r] + out
        if not n:
            return out


def _in_range(value):
    return isinstance(value, int) and 0 <= value <= MAX_INTEGER


def _clean_title(title):
    title = (title or "").strip()
    if not title:
        raise ValidationError(REQUIRED_FIELDS)
    return title


def _clean_price(price):
    if isinstance(price, str):
        price = price.strip()
        if not price:
            raise ValidationError(REQUIRED_FIELDS)
        try:
            price = int(price)
        except ValueError:
            raise ValidationError("Le prix doit être un nombre entier") from None
    if price is None:
        raise ValidationError(REQUIRED_FIELDS)
    if isinstance(price, bool) or not isinstance(price, int):
        raise ValidationError("Le prix doit être un nombre entier")
    if price < 0:
        raise ValidationError("Le prix ne peut pas être négatif")
    if price > MAX_INTEGER:
        raise ValidationError("Le prix est trop élevé")
    return price


class Catalog:
    """Storage access for the shop. All operations go through ``session``."""

    def __init__(self, session):
        self._session = session

    # -- queries ------------------------------------------------------------

    def list_categories(self) -> List[Category]:
        return self._session.query(Category).order_by(Category.name.asc()).all()

    def get_category_by_slug(self, slug) -> Optional[Category]:
        return self._session.query(Category).filter(Category.slug == slug).first()

    def list_products(self, product_filter: Optional[ProductFilter] = None) -> List[Product]:
        product_filter = product_filter or ProductFilter()
        # nothing can sit past the largest offset the database accepts
        if not _in_range(product_filter.offset):
            return []
        query = (
            self._session.query(Product)
            .outerjoin(Product.category)
            .options(contains_eager(Product.category))
        )
        query = _apply_clauses(query, product_filter.clauses())
        return (
            query.order_by(Product.created_at.desc(), Product.id.desc())
            .limit(min(product_filter.limit, MAX_INTEGER))
            .offset(product_filter.offset)
            .all()
        )

    def count_products(self, product_filter: Optional[ProductFilter] = None) -> int:
        product_filter = product_filter or ProductFilter()
        query = (
            self._session.query(func.count(Product.id))
            .select_from(Product)
            .outerjoin(Product.category)
        )
        return _apply_clauses(query, product_filter.clauses()).scalar()

    def get_product_by_slug(self, slug) -> Optional[Product]:
        return (
            self._session.query(Product)
            .outerjoin(Product.category)
            .options(contains_eager(Product.category))
            .filter(Product.slug == slug)
            .first()
        )

    def get_product(self, product_id) -> Optional[Product]:
        if not _in_range(product_id):
            return None
        return self._session.get(Product, product_id)

    # -- mutations ----------------------------------------------------------

    def create_product(self, title, price, description=None, image_path=None, category_id=None) -> str:
        title = _clean_title(title)
        price = _clean_price(price)
        self._check_category(category_id)

        def stage():
            product = Product(
                title=title,
                slug=self._new_slug(title),
                description=description or None,
                price=price,
                image_path=image_path or None,
                category_id=category_id or None,
            )
            self._session.add(product)
            return product

        product = self._save(stage)
        logger.info("Created product %s (%s)", product.id, product.slug)
        return product.slug

    def update_product(self, product_id, title, price, description=None, image_path=None, category_id=None) -> str:
        if self.get_product(product_id) is None:
            raise NotFoundError(f"No product with id {product_id}")
        title = _clean_title(title)
        price = _clean_price(price)
        self._check_category(category_id)

        def stage():
            product = self.get_product(product_id)
            if product is None:
                raise NotFoundError(f"No product with id {product_id}")
            if title != product.title:
                product.slug = self._new_slug(title)
            product.title = title
            product.description = description or None
            product.price = price
            if image_path:
                product.image_path = image_path
            product.category_id = category_id or None
            return product

        product = self._save(stage)
        logger.info("Updated product %s (%s)", product.id, product.slug)
        return product.slug

    def delete_product(self, product_id) -> None:
        if not _in_range(product_id):
            return
        deleted = self._session.query(Product).filter(Product.id == product_id).delete()
        self._commit()
        if deleted:
            logger.info("Deleted product %s", product_id)

    # -- auth ---------------------------------------------------------------

    def authenticate(self, username, password) -> User:
        """Return the user for a valid username/password pair.

        Unknown usernames and wrong passwords raise the same AuthError.
        """
        user = self._session.query(User).filter(User.username == (username or "")).first()
        if user is None or not check_password_hash(user.password_hash, password or ""):
            logger.warning("Failed login for %r", username)
            raise AuthError()
        return user

    # -- helpers ------------------------------------------------------------

    def _check_category(self, category_id):
        if not category_id:
            return
        if not _in_range(category_id) or self._session.get(Category, category_id) is None:
            raise ValidationError("Catégorie inconnue")

    def _new_slug(self, title):
        base = slugify(title) or "product"
        stamp = int(time.time() * 1000)
        slug = f"{base}-{_to_base36(stamp)}"
        while self._session.query(Product.id).filter(Product.slug == slug).first() is not None:
            stamp += 1
            slug = f"{base}-{_to_base36(stamp)}"
        return slug

    def _save(self, stage):
        """Stage a product change with ``stage`` and commit it.

        A slug taken by a concurrent writer between staging and commit shows
        up as an IntegrityError; the change is then staged again with a fresh
        slug.
        """
        for attempt in range(1, SAVE_ATTEMPTS + 1):
            product = stage()
            slug = product.slug
            try:
                self._session.commit()
            except IntegrityError:
                self._session.rollback()
                if attempt == SAVE_ATTEMPTS:
                    raise
                logger.warning("Slug collision on %s, retrying", slug)
            except Exception:
                self._session.rollback()
                raise
            else:
                return product

    def _commit(self):
        try:
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

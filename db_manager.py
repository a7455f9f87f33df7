#!/usr/bin/env python3
"""
Database management script for Parfaite Shop
Usage: python db_manager.py [command]

Commands:
  list_users     - List all admin users in the database
  list_products  - List the most recent products
  create_user    - Create a new admin user (interactive)
  seed           - Insert the default admin and categories if missing
  reset_db       - Delete all data, recreate tables and re-seed
"""

import sys

from werkzeug.security import generate_password_hash

from app import create_app
from catalog import Catalog, ProductFilter
from models import User, db, init_db, seed_defaults


def list_users(app):
    """List all users in the database"""
    with app.app_context():
        users = User.query.order_by(User.id).all()
        if not users:
            print("No users found in database.")
            return

        print(f"\n{'ID':<5} {'Username':<30}")
        print("-" * 35)
        for user in users:
            print(f"{user.id:<5} {user.username:<30}")
        print(f"\nTotal users: {len(users)}")


def list_products(app):
    """List the most recent products"""
    with app.app_context():
        catalog = Catalog(db.session)
        products = catalog.list_products(ProductFilter(limit=app.config["ADMIN_PRODUCTS"]))
        if not products:
            print("No products found in database.")
            return

        print(f"\n{'ID':<5} {'Price':>10}  {'Category':<15} {'Slug':<40}")
        print("-" * 72)
        for product in products:
            print(f"{product.id:<5} {product.price:>10}  {product.category_slug or '-':<15} {product.slug:<40}")
        print(f"\nTotal products: {catalog.count_products()}")


def create_user(app):
    """Create a new admin user interactively"""
    with app.app_context():
        print("\n--- Create New Admin ---")
        username = input("Username: ").strip()
        password = input("Password: ").strip()

        if not username or not password:
            print("Error: All fields are required!")
            return

        if User.get_by_username(username):
            print(f"Error: User '{username}' already exists!")
            return

        db.session.add(User(username=username, password_hash=generate_password_hash(password)))
        db.session.commit()
        print(f"Success: User '{username}' created")


def seed(app):
    """Insert the default admin and categories if missing"""
    with app.app_context():
        seed_defaults(app.config["ADMIN_USERNAME"], app.config["ADMIN_PASSWORD"])
        print("Success: Seed data present.")


def reset_db(app):
    """Delete all data, recreate tables and re-seed"""
    with app.app_context():
        confirm = input("This will DELETE ALL DATA. Are you sure? [y/N]: ")
        if confirm.lower() != 'y':
            print("Reset cancelled.")
            return

        db.drop_all()
        init_db()
        seed_defaults(app.config["ADMIN_USERNAME"], app.config["ADMIN_PASSWORD"])
        print("Success: Database reset. All tables recreated and seeded.")


def show_help(app=None):
    """Show help message"""
    print(__doc__)


COMMANDS = {
    'list_users': list_users,
    'list_products': list_products,
    'create_user': create_user,
    'seed': seed,
    'reset_db': reset_db,
    'help': show_help,
}


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    if not argv:
        show_help()
        return

    command = argv[0].lower()
    if command not in COMMANDS:
        print(f"Unknown command: {command}")
        show_help()
        return
    if command == 'help':
        show_help()
        return

    COMMANDS[command](create_app())


if __name__ == "__main__":
    main()

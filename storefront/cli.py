# storefront/cli.py
from decimal import Decimal

import click
from werkzeug.security import generate_password_hash

from .extensions import db
from .model import Category, Product, User
from .services.category_service import next_sort_order

SAMPLE_CATALOG = {
    "Điện thoại": [
        ("iPhone 15 Pro Max", "32990000", 15),
        ("Samsung Galaxy S24 Ultra", "29990000", 20),
    ],
    "Laptop": [
        ("MacBook Pro 16 inch", "62990000", 5),
        ("Dell XPS 13", "34990000", 8),
    ],
    "Phụ kiện": [
        ("AirPods Pro 2", "5990000", 40),
        ("Sony WH-1000XM5", "7490000", 12),
    ],
}


@click.command("create-admin")
@click.option("--email", required=True)
@click.option("--password", required=True)
@click.option("--name", required=True)
def create_admin(email, password, name):
    email = email.strip().lower()
    if User.query.filter_by(email=email).first():
        click.echo("Email already exists"); return
    u = User(email=email, name=name, password_hash=generate_password_hash(password), role="admin")
    db.session.add(u); db.session.commit()
    click.echo(f"Admin created: {u.id} {u.email}")


@click.command("seed-catalog")
def seed_catalog():
    """Insert a few sample categories and products (skips existing names)."""
    added = 0
    for cat_name, products in SAMPLE_CATALOG.items():
        cat = Category.query.filter_by(name=cat_name).first()
        if not cat:
            cat = Category(name=cat_name, sort_order=next_sort_order(None))
            db.session.add(cat)
            db.session.flush()
        for name, price, stock in products:
            if Product.query.filter_by(name=name).first():
                continue
            db.session.add(Product(name=name, price=Decimal(price), stock=stock, category_id=cat.id))
            added += 1
    db.session.commit()
    click.echo(f"Seeded {added} products")


def register_cli(app):
    app.cli.add_command(create_admin)
    app.cli.add_command(seed_catalog)

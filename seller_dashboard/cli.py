"""Flask CLI commands for admin operations."""
import uuid

import click
from flask import current_app


def register_cli(app):
    @app.cli.command("init-db")
    def init_db():
        """Create all tables."""
        from seller_dashboard.extensions import db

        db.create_all()
        click.echo("Database initialized.")

    @app.cli.command("seed-demo")
    @click.option("--phone", default="+919999900000", help="Demo seller phone number")
    def seed_demo(phone):
        """Seed a demo seller with a few listings (idempotent)."""
        from seller_dashboard.extensions import db
        from seller_dashboard.models import ProductVersion, Seller

        if Seller.query.filter_by(phone=phone).first():
            click.echo("Demo seller already exists, skipping demo seed.")
            return

        seller = Seller(full_name="Demo Seller", phone=phone, auth_provider="otp")
        db.session.add(seller)
        db.session.flush()

        public_url = current_app.config["S3_PUBLIC_URL"].rstrip("/")
        demo_products = [
            ("Engineering Mathematics, 3rd Ed.", ["Books"], "buy", None, "350.00", 4, 2),
            ("Mountain Bike 21 Speed", ["Cycles, Bikes, etc"], "rent", "Per month", "800.00", 1, 3),
            ("Noise Cancelling Headphones", ["Tech and Gadgets", "Brand New"], "buy", None, "4999.00", 2, 0),
        ]
        for title, categories, kind, session, price, left, sold in demo_products:
            group_id = str(uuid.uuid4())
            db.session.add(
                ProductVersion(
                    product_group_id=group_id,
                    user_id=seller.id,
                    title=title,
                    description=f"• {title}\n• Good condition",
                    category=categories,
                    type=kind,
                    session=session,
                    price=price,
                    quantity_left=left,
                    quantity_sold=sold,
                    image_url=[f"{public_url}/{seller.id}/demo-{group_id[:8]}/image_0.jpg"],
                    edit_count=0,
                    approval_status="approved",
                )
            )
        db.session.commit()
        click.echo(f"Seeded seller {seller.id} with {len(demo_products)} demo products.")

    @app.cli.command("check-config")
    def check_config():
        """List backend settings that are missing."""
        from seller_dashboard.config import Config

        missing = Config.missing_backend_settings(current_app.config)
        if not missing:
            click.echo("Configuration OK.")
            return
        for name in missing:
            click.echo(f"  missing: {name}")
        raise SystemExit(1)

    @app.cli.command("stats")
    def stats():
        """Show product version statistics."""
        from seller_dashboard.services.dashboard_service import get_stats

        s = get_stats()
        total = sum(s.values())
        click.echo(f"Total versions: {total}")
        for status, count in sorted(s.items()):
            click.echo(f"  {status}: {count}")

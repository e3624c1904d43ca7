import click
from flask import Flask
from flask_migrate import Migrate

from config import Config
from models import db
from routes import health_bp, otp_bp, auth_bp
from services.registry import get_otp_service, init_otp_service
from utils.logger import configure_logging


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)

    configure_logging(app.config.get("LOG_LEVEL", "INFO"))

    # Register routes
    app.register_blueprint(health_bp)
    app.register_blueprint(otp_bp)
    app.register_blueprint(auth_bp)

    # Database init
    db.init_app(app)

    # Migrations
    Migrate(app, db)

    init_otp_service(app)

    @app.after_request
    def add_security_headers(resp):
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["X-Frame-Options"] = "DENY"
        resp.headers["Referrer-Policy"] = "no-referrer"
        resp.headers["Cache-Control"] = "no-store"
        resp.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none';"
        return resp

    register_cli(app)

    return app

#-------------------------

def register_cli(app):
    @app.cli.command("purge-otps")
    @click.option("--hours", type=int, default=None, help="Retention window in hours.")
    def purge_otps(hours):
        """Delete one-time codes older than the retention window."""
        retention = hours if hours is not None else app.config.get("OTP_RETENTION_HOURS", 24)
        purged = get_otp_service().purge_expired(retention)
        click.echo(f"Purged {purged} one-time code(s) older than {retention}h")

#-------------------------


if __name__ == "__main__":
    app = create_app()
    # Run locally
    app.run(host="127.0.0.1", port=5002)

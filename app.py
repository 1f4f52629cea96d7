#!/usr/bin/env python3
"""
QuoteFlow web entry point: create_app() builds the Flask app, wires the
dashboard Blueprint, and registers the `flask seed-demo` command.
"""

import os
import logging

import click
from flask import Flask

log = logging.getLogger("quoteflow")


def create_app(config: dict = None):
    """Application factory."""
    if not (config or {}).get("TESTING"):
        from logging_config import setup_logging
        setup_logging()

    app = Flask(__name__)
    app.secret_key = os.environ.get("SECRET_KEY", "quoteflow-dev")
    # monthly stats are ordered Jan..Dec
    app.json.sort_keys = False
    if config:
        app.config.update(config)

    # ── Persistent database init ──────────────────────────────────────────────
    try:
        from src.core.db import startup as db_startup
        result = db_startup()
        log.info("DB: %s | users=%d rfqs=%d",
                 result["db_path"],
                 result["stats"].get("users", 0),
                 result["stats"].get("rfqs", 0))
    except Exception as e:
        log.warning("DB init skipped: %s", e)

    # ── First admin account ───────────────────────────────────────────────────
    try:
        from src.core.secrets import get_key
        from src.core.workflow import bootstrap_admin
        bootstrap_admin(get_key("bootstrap_admin_email"),
                        get_key("bootstrap_admin_password"))
    except Exception as e:
        log.warning("Admin bootstrap skipped: %s", e)

    # Register the dashboard blueprint (all routes)
    from src.api.dashboard import bp
    app.register_blueprint(bp)

    # ── Security middleware (rate limiting, CSRF, headers) ──────────
    try:
        from src.core.security import init_security
        init_security(app)
    except Exception as e:
        log.warning("Security init skipped: %s", e)

    # ── Runtime self-test: catches path/route/data bugs at boot ──────────
    if not app.config.get("TESTING"):
        try:
            from src.core.secrets import startup_check
            from src.core.startup_checks import run_startup_checks
            startup_check()
            with app.app_context():
                checks = run_startup_checks(app)
                if checks["failed"] > 0:
                    log.error("STARTUP: %d checks FAILED: review logs", checks["failed"])
        except Exception as e:
            log.warning("Startup checks skipped: %s", e)

    @app.cli.command("seed-demo")
    def seed_demo():
        """Load demo users and historical RFQs."""
        from src.seed_data import load_demo
        added = load_demo()
        click.echo(f"Added {added['users']} users, {added['rfqs']} RFQs")

    return app


# For gunicorn: gunicorn app:app
app = create_app()

if __name__ == "__main__":
    port = int(os.environ.get("PORT", 5000))
    app.run(host="0.0.0.0", port=port, debug=False)

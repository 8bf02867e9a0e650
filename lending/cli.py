import click

from lending.extensions import db
from lending.tasks.expiry_sweep import sweep_expired_pending


def register_commands(app):
    @app.cli.command("init-db")
    def init_db():
        """Create the tables (use `flask db upgrade` once migrations exist)."""
        db.create_all()
        click.echo("Tables created.")

    @app.cli.command("sweep-expired")
    @click.option("--hours", type=int, default=None, help="Override PENDING_EXPIRY_HOURS.")
    def sweep_expired(hours):
        """Reject pending borrows that waited past the expiry window."""
        result = sweep_expired_pending(expiry_hours=hours)
        click.echo(
            f"scanned={result.scanned} rejected={result.rejected} "
            f"skipped={result.skipped} failed={result.failed}"
        )

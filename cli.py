# cli.py
import time

import click
from flask import current_app
from flask.cli import with_appcontext

import actions
from poller import NotificationPoller


@click.command("init-db")
@with_appcontext
def init_db_command():
    """Create missing tables and repair columns of an existing database."""
    from app import ensure_sqlite_schema
    added = ensure_sqlite_schema(current_app._get_current_object())
    click.echo(f"Database ready ({len(added)} column(s) added).")


@click.command("add-task")
@with_appcontext
@click.argument("amount")
@click.option("--type", "waste_type", default=None, help="e.g. organic, recyclable, hazardous")
@click.option("--location", default=None)
def add_task_command(amount, waste_type, location):
    """Record a collection task, e.g. `flask add-task "12 kg" --type organic`."""
    task = actions.create_collection_task(location, waste_type, amount)
    click.echo(f"Task {task.id} recorded: {task.amount} ({task.waste_type or 'unsorted'})")


@click.command("watch-notifications")
@with_appcontext
@click.argument("email")
@click.option("--interval", type=float, default=None, help="Seconds between polls.")
@click.option("--count", type=int, default=0, help="Stop after this many polls (0 = until Ctrl-C).")
def watch_notifications_command(email, interval, count):
    """Print a user's unread notifications as they arrive."""
    app = current_app._get_current_object()
    user = actions.get_user_by_email(email)
    if user is None:
        raise click.ClickException(f"No user with email {email}")
    user_id = user.id
    seen: set[int] = set()
    polls = {"n": 0}

    def fetch():
        with app.app_context():
            return [(n.id, n.message) for n in actions.get_unread_notifications(user_id)]

    def on_update(items):
        polls["n"] += 1
        for nid, message in items:
            if nid not in seen:
                seen.add(nid)
                click.echo(f"[{nid}] {message}")

    def on_error(e):
        click.echo(f"Error fetching notifications: {e}", err=True)

    interval = interval or app.config.get("NOTIFICATION_POLL_SECONDS", 30)
    poller = NotificationPoller(fetch, on_update, interval=interval, on_error=on_error)
    with poller:
        try:
            while poller.alive and (not count or polls["n"] < count):
                time.sleep(0.1)
        except KeyboardInterrupt:
            pass


def register(app):
    app.cli.add_command(init_db_command)
    app.cli.add_command(add_task_command)
    app.cli.add_command(watch_notifications_command)

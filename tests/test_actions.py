"""Tests for the persistence gateway."""
import pytest
from sqlalchemy.exc import OperationalError

import actions
from errors import PersistenceError
from extensions import db
from models import Notification, Reward


@pytest.fixture
def ctx(app):
    with app.app_context():
        yield


def test_create_user_is_idempotent(ctx):
    u1 = actions.create_user("Mia@Example.com", "Mia")
    u2 = actions.create_user("mia@example.com", "Someone else")
    assert u1.id == u2.id
    assert u2.name == "Mia"
    assert actions.get_user_by_email("MIA@example.com").id == u1.id
    assert actions.get_user_by_email("nobody@example.com") is None


def test_create_user_default_name(ctx):
    assert actions.create_user("anon@example.com").name == "Anonymous User"


def test_create_user_requires_email(ctx):
    with pytest.raises(PersistenceError):
        actions.create_user("  ")


def test_create_report_rewards_and_notifies(ctx):
    user = actions.create_user("mia@example.com", "Mia")
    report = actions.create_report(
        user.id, "MG Road, Pune", "plastic", "2 kg",
        verification_result={"wasteType": "plastic", "quantity": "2 kg", "confidence": 0.8},
    )
    assert report.id is not None
    assert '"wasteType": "plastic"' in report.verification_result
    assert actions.get_user_balance(user.id) == 10
    unread = actions.get_unread_notifications(user.id)
    assert [n.message for n in unread] == ["You've earned 10 points for reporting waste!"]
    assert Reward.query.count() == 1


def test_recent_reports_newest_first_and_limited(ctx):
    user = actions.create_user("mia@example.com")
    for i in range(5):
        actions.create_report(user.id, f"Spot {i}", "paper", f"{i} kg")
    recent = actions.get_recent_reports(3)
    assert [r.location for r in recent] == ["Spot 4", "Spot 3", "Spot 2"]


def test_balance_sums_points(ctx):
    user = actions.create_user("mia@example.com")
    actions.create_report(user.id, "A", "glass", "1 kg", points=10)
    actions.create_report(user.id, "B", "glass", "1 kg", points=15)
    assert actions.get_user_balance(user.id) == 25
    assert actions.get_user_balance(9999) == 0


def test_collection_tasks(ctx):
    actions.create_collection_task("Ward 4", "organic", "12 kg")
    actions.create_collection_task(None, None, "3 kg")
    tasks = actions.get_waste_collection_tasks()
    assert [t.amount for t in tasks] == ["3 kg", "12 kg"]
    assert tasks[0].status == "pending"


def test_mark_notification_as_read(ctx):
    user = actions.create_user("mia@example.com")
    other = actions.create_user("zed@example.com")
    actions.create_report(user.id, "A", "metal", "1 kg")
    n = Notification.query.first()
    assert actions.mark_notification_as_read(n.id, user_id=other.id) is False
    assert actions.mark_notification_as_read(n.id, user_id=user.id) is True
    assert actions.get_unread_notifications(user.id) == []
    assert actions.mark_notification_as_read(12345) is False


def test_database_errors_become_persistence_errors(ctx, monkeypatch):
    def boom(*a, **kw):
        raise OperationalError("SELECT", {}, Exception("disk I/O error"))

    monkeypatch.setattr(db.session, "commit", boom)
    with pytest.raises(PersistenceError, match="Error creating collection task"):
        actions.create_collection_task("X", "organic", "1 kg")

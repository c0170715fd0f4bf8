# actions.py
"""Persistence gateway: every read and write the pages and APIs need."""
import json
import logging

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from errors import PersistenceError
from extensions import db
from models import User, Report, Reward, CollectionTask, Notification

logger = logging.getLogger("wastetrack.actions")

REPORT_REWARD_POINTS = 10


def _fail(context: str, exc: Exception):
    db.session.rollback()
    logger.error("%s: %s", context, exc)
    return PersistenceError(f"{context}: {exc}")


# ---------------- Users ----------------

def create_user(email: str, name: str | None = None, password: str | None = None) -> User:
    """Create a user, or return the existing one for this email."""
    email = (email or "").strip().lower()
    if not email:
        raise PersistenceError("Email is required")
    try:
        existing = User.query.filter_by(email=email).first()
        if existing:
            return existing
        u = User(email=email, name=name or "Anonymous User")
        if password:
            u.set_password(password)
        db.session.add(u)
        db.session.commit()
        return u
    except SQLAlchemyError as e:
        raise _fail("Error creating user", e) from e


def get_user_by_email(email: str) -> User | None:
    try:
        return User.query.filter_by(email=(email or "").strip().lower()).first()
    except SQLAlchemyError as e:
        raise _fail("Error fetching user by email", e) from e


# ---------------- Reports ----------------

def create_report(user_id: int, location: str, waste_type: str, amount: str,
                  image_url: str | None = None, verification_result=None,
                  points: int = REPORT_REWARD_POINTS) -> Report:
    """Store a report and credit the reporter with a reward and a notification."""
    if verification_result is not None and not isinstance(verification_result, str):
        verification_result = json.dumps(verification_result)
    try:
        report = Report(
            user_id=user_id,
            location=location,
            waste_type=waste_type,
            amount=amount,
            image_url=image_url,
            verification_result=verification_result,
        )
        db.session.add(report)
        db.session.add(Reward(
            user_id=user_id,
            points=points,
            name="Waste report",
            description=f"Reported {waste_type} at {location}",
        ))
        db.session.add(Notification(
            user_id=user_id,
            message=f"You've earned {points} points for reporting waste!",
            type="reward",
        ))
        db.session.commit()
        logger.info("report %s created by user %s (+%d points)", report.id, user_id, points)
        return report
    except SQLAlchemyError as e:
        raise _fail("Error creating report", e) from e


def get_recent_reports(limit: int = 10) -> list[Report]:
    try:
        return (Report.query
                .order_by(Report.created_at.desc(), Report.id.desc())
                .limit(limit).all())
    except SQLAlchemyError as e:
        raise _fail("Error fetching recent reports", e) from e


# ---------------- Rewards ----------------

def get_all_rewards() -> list[Reward]:
    try:
        return Reward.query.order_by(Reward.created_at.desc()).all()
    except SQLAlchemyError as e:
        raise _fail("Error fetching rewards", e) from e


def get_user_balance(user_id: int) -> int:
    try:
        total = (db.session.query(func.coalesce(func.sum(Reward.points), 0))
                 .filter(Reward.user_id == user_id)
                 .scalar())
        return int(total or 0)
    except SQLAlchemyError as e:
        raise _fail("Error fetching user balance", e) from e


# ---------------- Collection tasks ----------------

def create_collection_task(location: str | None, waste_type: str | None, amount: str,
                           collector_id: int | None = None) -> CollectionTask:
    try:
        task = CollectionTask(
            location=location,
            waste_type=waste_type,
            amount=amount,
            collector_id=collector_id,
        )
        db.session.add(task)
        db.session.commit()
        return task
    except SQLAlchemyError as e:
        raise _fail("Error creating collection task", e) from e


def get_waste_collection_tasks(limit: int = 20) -> list[CollectionTask]:
    try:
        return (CollectionTask.query
                .order_by(CollectionTask.created_at.desc(), CollectionTask.id.desc())
                .limit(limit).all())
    except SQLAlchemyError as e:
        raise _fail("Error fetching collection tasks", e) from e


# ---------------- Notifications ----------------

def get_unread_notifications(user_id: int) -> list[Notification]:
    try:
        return (Notification.query
                .filter_by(user_id=user_id, is_read=False)
                .order_by(Notification.created_at.desc())
                .all())
    except SQLAlchemyError as e:
        raise _fail("Error fetching unread notifications", e) from e


def mark_notification_as_read(notification_id: int, user_id: int | None = None) -> bool:
    """Returns False when no matching notification exists."""
    try:
        q = Notification.query.filter_by(id=notification_id)
        if user_id is not None:
            q = q.filter_by(user_id=user_id)
        n = q.first()
        if n is None:
            return False
        n.is_read = True
        db.session.commit()
        return True
    except SQLAlchemyError as e:
        raise _fail("Error marking notification as read", e) from e

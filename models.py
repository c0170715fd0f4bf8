# models.py
from datetime import datetime, timezone

from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash
from extensions import db, login_manager


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class User(UserMixin, db.Model):
    __tablename__ = "users"
    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False, default="Anonymous User")
    # null for accounts created through an external identity provider
    password_hash = db.Column(db.String(255))
    created_at = db.Column(db.DateTime, default=utcnow)

    def set_password(self, pw: str) -> None:
        self.password_hash = generate_password_hash(pw)

    def check_password(self, pw: str) -> bool:
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, pw)


@login_manager.user_loader
def load_user(user_id: str):
    return db.session.get(User, int(user_id))


class Report(db.Model):
    __tablename__ = "reports"
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    location = db.Column(db.Text, nullable=False)
    waste_type = db.Column(db.String(255), nullable=False)
    amount = db.Column(db.String(255), nullable=False)
    image_url = db.Column(db.Text)
    verification_result = db.Column(db.Text)  # raw JSON from the vision model
    status = db.Column(db.String(50), nullable=False, default="pending")
    created_at = db.Column(db.DateTime, default=utcnow, index=True)


class Reward(db.Model):
    __tablename__ = "rewards"
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    points = db.Column(db.Integer, nullable=False, default=0)
    name = db.Column(db.String(255))
    description = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=utcnow, index=True)


class CollectionTask(db.Model):
    __tablename__ = "collection_tasks"
    id = db.Column(db.Integer, primary_key=True)
    location = db.Column(db.Text)
    waste_type = db.Column(db.String(255))
    amount = db.Column(db.String(255), nullable=False)
    status = db.Column(db.String(50), nullable=False, default="pending")
    collector_id = db.Column(db.Integer, db.ForeignKey("users.id"), index=True)
    created_at = db.Column(db.DateTime, default=utcnow, index=True)


class Notification(db.Model):
    __tablename__ = "notifications"
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    message = db.Column(db.Text, nullable=False)
    type = db.Column(db.String(50), nullable=False, default="info")
    is_read = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=utcnow, index=True)


def waste_category(raw) -> str | None:
    """Map a free-text waste label onto one of the dashboard buckets."""
    s = raw.lower() if isinstance(raw, str) else ""
    if "organic" in s: return "organic"
    if "recycl" in s: return "recyclable"
    if "hazard" in s: return "hazardous"
    return None

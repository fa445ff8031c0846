from __future__ import annotations

from ..extensions import db
from drivncook.time_utils import to_utc_z


class Notification(db.Model):
    """
    In-app notification.

    Targets either one user (target_user_id) or a whole role (target_role).
    dedupe_key, when set, makes a dispatch happen at most once.
    """
    __tablename__ = "notifications"
    __table_args__ = (
        db.Index("ix_notifications_target_user_status", "target_user_id", "status"),
        db.Index("ix_notifications_target_role_status", "target_role", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    type = db.Column(db.String(40), nullable=False, index=True)
    priority = db.Column(db.String(16), nullable=False, default="MEDIUM")  # LOW, MEDIUM, HIGH, URGENT
    status = db.Column(db.String(16), nullable=False, default="UNREAD")    # UNREAD, READ, ARCHIVED
    title = db.Column(db.String(255), nullable=False)
    message = db.Column(db.Text, nullable=False)
    data = db.Column(db.JSON, nullable=True)

    target_user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=True)
    target_role = db.Column(db.String(16), nullable=True)
    franchise_id = db.Column(db.Integer, db.ForeignKey("franchises.id", ondelete="SET NULL"), nullable=True, index=True)
    related_entity_id = db.Column(db.Integer, nullable=True)
    related_entity_type = db.Column(db.String(32), nullable=True)
    action_url = db.Column(db.String(512), nullable=True)
    dedupe_key = db.Column(db.String(255), nullable=True, unique=True)

    expires_at = db.Column(db.DateTime(timezone=True), nullable=True)
    read_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    deliveries = db.relationship("NotificationDelivery", backref="notification", lazy=True,
                                 cascade="all, delete-orphan")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "priority": self.priority,
            "status": self.status,
            "title": self.title,
            "message": self.message,
            "data": self.data or {},
            "target_user_id": self.target_user_id,
            "target_role": self.target_role,
            "franchise_id": self.franchise_id,
            "related_entity_id": self.related_entity_id,
            "related_entity_type": self.related_entity_type,
            "action_url": self.action_url,
            "expires_at": to_utc_z(self.expires_at),
            "read_at": to_utc_z(self.read_at),
            "created_at": to_utc_z(self.created_at),
        }


class NotificationDelivery(db.Model):
    """
    One email attempt for one recipient of a notification.

    FAILED rows are the dead-letter queue replayed by
    `flask notifications retry-failed`.
    """
    __tablename__ = "notification_deliveries"
    __table_args__ = (
        db.Index("ix_notification_deliveries_status", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    notification_id = db.Column(db.Integer, db.ForeignKey("notifications.id", ondelete="CASCADE"), nullable=False, index=True)
    recipient = db.Column(db.String(255), nullable=False)
    status = db.Column(db.String(16), nullable=False)  # SENT, FAILED, SKIPPED
    attempts = db.Column(db.Integer, nullable=False, default=1)
    last_error = db.Column(db.Text, nullable=True)
    sent_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "notification_id": self.notification_id,
            "recipient": self.recipient,
            "status": self.status,
            "attempts": self.attempts,
            "last_error": self.last_error,
            "sent_at": to_utc_z(self.sent_at),
        }

"""
Admin Models

Contains the admin allow-list and the append-only audit log.
"""

from .base import db, utcnow


class AdminUser(db.Model):
    """Auth-provider user ids granted admin capability."""
    __tablename__ = 'admin_users'

    user_id = db.Column(db.String(64), primary_key=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)


class AdminAuditLog(db.Model):
    """Immutable record of an admin write."""
    __tablename__ = 'admin_audit_logs'

    id = db.Column(db.Integer, primary_key=True)
    actor_user_id = db.Column(db.String(64), nullable=True, index=True)
    actor_email = db.Column(db.String(320), nullable=True)
    action = db.Column(db.String(50), nullable=False, index=True)
    entity_type = db.Column(db.String(50), nullable=False)
    entity_id = db.Column(db.String(64), nullable=True)
    # "metadata" is reserved on declarative models
    details = db.Column('metadata', db.JSON, nullable=False, default=dict)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)

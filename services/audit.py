"""
Audit Log Service

Append-only record of admin writes. Audit failures never fail the
write they describe; they are logged and skipped.
"""

import logging

from sqlalchemy.exc import SQLAlchemyError

from models import db, AdminAuditLog

logger = logging.getLogger(__name__)


def write_audit_log(actor, action, entity_type, entity_id=None, metadata=None):
    """
    Append an audit entry.

    Args:
        actor: dict-like with 'id' and 'email' of the acting user (or None)
        action: e.g. 'recipe.publish'
        entity_type: 'recipe' or 'ingredient'
        entity_id: id of the affected row
        metadata: JSON-serializable dict of extra details

    Returns:
        The created AdminAuditLog, or None if the write was skipped
    """
    actor = actor or {}
    entry = AdminAuditLog(
        actor_user_id=actor.get('id'),
        actor_email=actor.get('email'),
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id) if entity_id is not None else None,
        details=metadata or {},
    )
    try:
        db.session.add(entry)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.warning('Admin audit log skipped (%s %s): %s', action, entity_id, e)
        return None
    return entry

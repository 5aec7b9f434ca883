import logging

from sqlalchemy.exc import SQLAlchemyError

from seller_dashboard.errors import PersistenceError, ValidationError
from seller_dashboard.extensions import db
from seller_dashboard.models.audit_log import AuditLog
from seller_dashboard.models.support_query import SupportQuery

logger = logging.getLogger(__name__)


def submit_query(seller_id, subject, body):
    """Store a problem report. Subject is optional, body is not."""
    body = (body or "").strip()
    if not body:
        raise ValidationError(
            "The description of the problem cannot be empty.", field="body"
        )
    query = SupportQuery(user_id=seller_id, subject=(subject or "").strip() or None, body=body)
    try:
        db.session.add(query)
        db.session.flush()
        db.session.add(
            AuditLog(seller_id=seller_id, action="SUBMIT_QUERY", payload={"query_id": query.id})
        )
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.exception("Could not store support query")
        raise PersistenceError("Could not submit your query", cause=e)
    return query

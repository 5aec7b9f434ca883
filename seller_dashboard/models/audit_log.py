from datetime import datetime, timezone
from seller_dashboard.extensions import db


class AuditLog(db.Model):
    __tablename__ = "audit_log"

    id = db.Column(db.Integer, primary_key=True)
    seller_id = db.Column(db.String(36), nullable=False, index=True)
    action = db.Column(db.String(50), nullable=False)
    product_group_id = db.Column(db.String(36), nullable=True, index=True)
    payload = db.Column(db.JSON)
    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        index=True,
    )

    ACTIONS = {
        "CREATE_LISTING",
        "EDIT_LISTING",
        "REVERT",
        "DELETE_GROUP",
        "SUBMIT_QUERY",
        "UPDATE_PROFILE",
    }

    def __repr__(self):
        return f"<AuditLog {self.action} by {self.seller_id}>"

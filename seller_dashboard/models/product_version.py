import uuid
from datetime import datetime, timezone
from seller_dashboard.extensions import db


def _uuid():
    return str(uuid.uuid4())


class ProductVersion(db.Model):
    """One immutable snapshot of a listing.

    Every edit inserts a new row in the same ``product_group_id`` with the
    next ``edit_count``; rows are only ever deleted, never updated, by the
    dashboard.
    """

    __tablename__ = "product_versions"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    product_group_id = db.Column(
        db.String(36), nullable=False, default=_uuid, index=True
    )
    user_id = db.Column(
        db.String(36),
        db.ForeignKey("sellers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=False)
    category = db.Column(db.JSON)  # ["Books", "Rent"] or null
    type = db.Column(db.String(10), nullable=False, default="buy")
    quantity_left = db.Column(db.Integer, nullable=False, default=1)
    quantity_sold = db.Column(db.Integer, nullable=False, default=0)
    price = db.Column(db.Numeric(10, 2), nullable=False)
    session = db.Column(db.String(255))  # rental session label, rent only
    image_url = db.Column(db.JSON, nullable=False, default=list)
    edit_count = db.Column(db.Integer, nullable=False, default=0)
    approval_status = db.Column(
        db.String(20), nullable=False, default="pending", index=True
    )
    product_status = db.Column(db.String(20), nullable=False, default="available")
    reject_explanation = db.Column(db.Text)
    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.UniqueConstraint(
            "product_group_id", "edit_count", name="uq_product_group_version"
        ),
    )

    TYPES = {"buy", "rent"}
    APPROVAL_STATUSES = {"pending", "approved", "rejected"}

    @property
    def is_rejected(self):
        return self.approval_status == "rejected"

    @property
    def revenue(self):
        return float(self.price) * self.quantity_sold

    def to_dict(self):
        return {
            "id": self.id,
            "product_group_id": self.product_group_id,
            "user_id": self.user_id,
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "type": self.type,
            "quantity_left": self.quantity_left,
            "quantity_sold": self.quantity_sold,
            "price": float(self.price),
            "session": self.session,
            "image_url": list(self.image_url or []),
            "edit_count": self.edit_count,
            "approval_status": self.approval_status,
            "product_status": self.product_status,
            "reject_explanation": self.reject_explanation,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<ProductVersion {self.product_group_id} v{self.edit_count}>"

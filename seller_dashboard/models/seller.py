import uuid
from datetime import datetime, timezone
from seller_dashboard.extensions import db


class Seller(db.Model):
    __tablename__ = "sellers"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    full_name = db.Column(db.String(255), default="")
    email = db.Column(db.String(255), unique=True, index=True)
    phone = db.Column(db.String(32), unique=True, index=True)
    auth_provider = db.Column(db.String(20), nullable=False, default="otp")
    is_seller = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    PROVIDERS = {"otp", "google"}

    @property
    def is_google_user(self):
        return self.auth_provider == "google"

    def to_dict(self):
        return {
            "id": self.id,
            "full_name": self.full_name or "",
            "email": self.email,
            "phone": self.phone,
            "auth_provider": self.auth_provider,
            "is_google_user": self.is_google_user,
        }

    def __repr__(self):
        return f"<Seller {self.id}>"

from datetime import datetime, timezone
from seller_dashboard.extensions import db


class OtpCode(db.Model):
    __tablename__ = "otp_codes"

    id = db.Column(db.Integer, primary_key=True)
    channel = db.Column(db.String(10), nullable=False)  # phone, email
    destination = db.Column(db.String(255), nullable=False, index=True)
    purpose = db.Column(db.String(20), nullable=False)
    code_hash = db.Column(db.String(64), nullable=False)
    seller_id = db.Column(
        db.String(36), db.ForeignKey("sellers.id", ondelete="CASCADE")
    )
    signup_full_name = db.Column(db.String(255))
    signup_email = db.Column(db.String(255))
    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        index=True,
    )
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)
    consumed_at = db.Column(db.DateTime(timezone=True))

    def __repr__(self):
        return f"<OtpCode {self.purpose} for {self.destination}>"

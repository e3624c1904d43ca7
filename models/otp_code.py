from utils.clock import utcnow
from models.db import db


class OtpCode(db.Model):
    __tablename__ = "otp_codes"

    id = db.Column(db.Integer, primary_key=True)

    # normalized (trimmed, lower-cased); many rows per email over time
    email = db.Column(db.String(255), nullable=False, index=True)
    purpose = db.Column(db.String(32), nullable=False)
    # keyed SHA-256 hex digest; the plain code is never stored
    code_hash = db.Column(db.String(64), nullable=False)

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    expires_at = db.Column(db.DateTime, nullable=False)

    attempts = db.Column(db.Integer, default=0, nullable=False)
    consumed = db.Column(db.Boolean, default=False, nullable=False)

    __table_args__ = (
        db.Index("ix_otp_codes_email_created", "email", "created_at"),
        db.Index("ix_otp_codes_email_purpose_created", "email", "purpose", "created_at"),
    )


class OtpIssueLock(db.Model):
    """One row per email; locking it serialises code issuance for that email."""
    __tablename__ = "otp_issue_locks"

    email = db.Column(db.String(255), primary_key=True)
    locked_at = db.Column(db.DateTime, nullable=False)

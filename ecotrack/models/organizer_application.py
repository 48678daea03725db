from datetime import datetime, timezone

from . import db
from ..utils.time import to_iso_utc

ORGANIZER_TYPES = ("ngo", "college_school", "company_csr", "community_group")
APPLICATION_STATUSES = ("pending", "approved", "rejected")


class OrganizerApplication(db.Model):
    """Citizen request to be promoted to the organizer role."""

    __tablename__ = "organizer_applications"
    __table_args__ = (
        db.CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')",
            name="ck_organizer_applications_status",
        ),
        db.CheckConstraint(
            "organizer_type IN ('ngo', 'college_school', 'company_csr', 'community_group')",
            name="ck_organizer_applications_type",
        ),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    organization_name = db.Column(db.String(200), nullable=False)
    organizer_type = db.Column(db.String(32), nullable=False)
    official_email = db.Column(db.String(255), nullable=False)
    contact_number = db.Column(db.String(40), nullable=False)
    purpose = db.Column(db.Text, nullable=False)
    website_url = db.Column(db.String(512), nullable=True)
    proof_url = db.Column(db.String(512), nullable=True)
    proof_type = db.Column(db.String(40), nullable=True)
    status = db.Column(
        db.String(16), nullable=False, default="pending", server_default="pending", index=True
    )
    admin_remarks = db.Column(db.Text, nullable=True)
    reviewed_by = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    reviewed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "organization_name": self.organization_name,
            "organizer_type": self.organizer_type,
            "official_email": self.official_email,
            "contact_number": self.contact_number,
            "purpose": self.purpose,
            "website_url": self.website_url,
            "proof_url": self.proof_url,
            "proof_type": self.proof_type,
            "status": self.status,
            "admin_remarks": self.admin_remarks,
            "reviewed_by": self.reviewed_by,
            "reviewed_at": to_iso_utc(self.reviewed_at),
            "created_at": to_iso_utc(self.created_at),
        }

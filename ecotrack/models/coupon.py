from datetime import datetime, timezone

from . import db
from ..utils.time import as_utc, to_iso_utc


class Coupon(db.Model):
    """Partner coupon bought with points."""

    __tablename__ = "coupons"
    __table_args__ = (
        db.CheckConstraint("points_cost >= 0", name="ck_coupons_points_cost_non_negative"),
        db.CheckConstraint("total_redeemed >= 0", name="ck_coupons_total_redeemed_non_negative"),
        db.CheckConstraint(
            "max_redemptions IS NULL OR total_redeemed <= max_redemptions",
            name="ck_coupons_within_max_redemptions",
        ),
    )

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(160), nullable=False)
    description = db.Column(db.Text, nullable=True)
    icon = db.Column(db.String(16), nullable=False, default="🎟️")
    points_cost = db.Column(db.Integer, nullable=False)
    coupon_code = db.Column(db.String(64), nullable=False)
    expiry_date = db.Column(db.DateTime(timezone=True), nullable=True)
    max_redemptions = db.Column(db.Integer, nullable=True)
    total_redeemed = db.Column(db.Integer, nullable=False, default=0, server_default="0")
    is_active = db.Column(
        db.Boolean, nullable=False, default=True, server_default=db.text("true")
    )
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self) -> str:  # pragma: no cover - helper
        return f"<Coupon {self.id} {self.title}>"

    def is_expired(self, now: datetime | None = None) -> bool:
        expiry = as_utc(self.expiry_date)
        if expiry is None:
            return False
        now = now or datetime.now(timezone.utc)
        return now >= expiry

    @property
    def is_sold_out(self) -> bool:
        return self.max_redemptions is not None and self.total_redeemed >= self.max_redemptions

    def to_dict(self, include_code: bool = False) -> dict:
        payload = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "icon": self.icon,
            "points_cost": self.points_cost,
            "expiry_date": to_iso_utc(self.expiry_date),
            "max_redemptions": self.max_redemptions,
            "total_redeemed": self.total_redeemed,
            "is_active": self.is_active,
        }
        if include_code:
            payload["coupon_code"] = self.coupon_code
        return payload


class UserCoupon(db.Model):
    __tablename__ = "user_coupons"
    __table_args__ = (
        db.UniqueConstraint("user_id", "coupon_id", name="uq_user_coupons_user_coupon"),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    coupon_id = db.Column(
        db.Integer, db.ForeignKey("coupons.id", ondelete="CASCADE"), nullable=False
    )
    points_spent = db.Column(db.Integer, nullable=False)
    redeemed_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    coupon = db.relationship("Coupon")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "points_spent": self.points_spent,
            "redeemed_at": to_iso_utc(self.redeemed_at),
            "coupon": self.coupon.to_dict(include_code=True) if self.coupon else None,
        }

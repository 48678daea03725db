"""Coupon catalogue and atomic redemption."""

from __future__ import annotations

from sqlalchemy import or_, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..models import db
from ..models.coupon import Coupon, UserCoupon
from ..models.profile import Profile
from ..models.user import User
from ..utils.logger import get_logger
from ..utils.time import parse_datetime, utcnow

logger = get_logger(__name__)


def _fail(code: str) -> dict:
    db.session.rollback()
    return {"ok": False, "error": code}


def redeem_coupon(user: User, coupon_id: int) -> dict:
    """Spend points on a coupon.

    Preconditions are checked up front so the caller gets a precise reason,
    then re-asserted by guarded UPDATEs so concurrent attempts cannot both
    pass. Any failure rolls the whole transaction back.
    """

    if user is None:
        return {"ok": False, "error": "auth_required"}

    try:
        coupon = db.session.get(Coupon, coupon_id)
        if coupon is None:
            return _fail("not_found")
        if not coupon.is_active:
            return _fail("inactive")
        if coupon.is_expired(utcnow()):
            return _fail("expired")
        if UserCoupon.query.filter_by(user_id=user.id, coupon_id=coupon.id).first() is not None:
            return _fail("already_redeemed")
        if coupon.is_sold_out:
            return _fail("sold_out")

        cost = coupon.points_cost
        deducted = db.session.execute(
            update(Profile)
            .where(Profile.user_id == user.id, Profile.points >= cost)
            .values(points=Profile.points - cost)
            .execution_options(synchronize_session=False)
        )
        if deducted.rowcount == 0:
            return _fail("insufficient_points")

        claimed = db.session.execute(
            update(Coupon)
            .where(
                Coupon.id == coupon.id,
                Coupon.is_active.is_(True),
                or_(
                    Coupon.max_redemptions.is_(None),
                    Coupon.total_redeemed < Coupon.max_redemptions,
                ),
            )
            .values(total_redeemed=Coupon.total_redeemed + 1)
            .execution_options(synchronize_session=False)
        )
        if claimed.rowcount == 0:
            return _fail("sold_out")

        redemption = UserCoupon(user_id=user.id, coupon_id=coupon.id, points_spent=cost)
        db.session.add(redemption)
        db.session.flush()
        db.session.commit()
    except IntegrityError:
        # Unique (user_id, coupon_id) lost a race with a parallel attempt.
        return _fail("already_redeemed")
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("[COUPONS] redeem(%s) failed for user=%s", coupon_id, user.id)
        return {"ok": False, "error": "database_error"}

    profile = Profile.query.filter_by(user_id=user.id).populate_existing().first()
    db.session.refresh(coupon)
    logger.info("[COUPONS] user=%s redeemed coupon=%s for %d points", user.id, coupon.id, cost)
    return {
        "ok": True,
        "coupon_code": coupon.coupon_code,
        "points_remaining": profile.points if profile else None,
        "redemption": redemption.to_dict(),
    }


def list_available_coupons(user: User | None) -> list[dict]:
    coupons = Coupon.query.filter(Coupon.is_active.is_(True)).order_by(Coupon.points_cost.asc()).all()
    redeemed: set[int] = set()
    if user is not None:
        redeemed = {row.coupon_id for row in UserCoupon.query.filter_by(user_id=user.id).all()}
    now = utcnow()
    return [
        {
            **coupon.to_dict(),
            "redeemed": coupon.id in redeemed,
            "expired": coupon.is_expired(now),
            "sold_out": coupon.is_sold_out,
        }
        for coupon in coupons
    ]


def list_user_coupons(user_id: int) -> list[dict]:
    rows = (
        UserCoupon.query.filter_by(user_id=user_id)
        .order_by(UserCoupon.redeemed_at.desc(), UserCoupon.id.desc())
        .all()
    )
    return [row.to_dict() for row in rows]


def _optional_int(value, name: str) -> int | None:
    if value is None or value == "":
        return None
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be an integer")
    return number


def create_coupon(payload: dict) -> dict:
    title = (payload.get("title") or "").strip()
    coupon_code = (payload.get("coupon_code") or "").strip()
    if not title or not coupon_code:
        return {"ok": False, "error": "invalid_input", "message": "title and coupon_code are required"}

    try:
        points_cost = _optional_int(payload.get("points_cost"), "points_cost")
        max_redemptions = _optional_int(payload.get("max_redemptions"), "max_redemptions")
    except ValueError as exc:
        return {"ok": False, "error": "invalid_input", "message": str(exc)}

    if points_cost is None or points_cost < 0:
        return {"ok": False, "error": "invalid_input", "message": "points_cost must be >= 0"}
    if max_redemptions is not None and max_redemptions < 1:
        return {"ok": False, "error": "invalid_input", "message": "max_redemptions must be positive"}

    expiry_raw = payload.get("expiry_date")
    expiry_date = parse_datetime(expiry_raw)
    if expiry_raw and expiry_date is None:
        return {"ok": False, "error": "invalid_input", "message": "expiry_date is not a valid date"}

    coupon = Coupon(
        title=title,
        description=(payload.get("description") or "").strip() or None,
        icon=payload.get("icon") or "🎟️",
        points_cost=points_cost,
        coupon_code=coupon_code,
        expiry_date=expiry_date,
        max_redemptions=max_redemptions,
        is_active=bool(payload.get("is_active", True)),
    )
    try:
        db.session.add(coupon)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("[COUPONS] create failed")
        return {"ok": False, "error": "database_error"}

    logger.info("[COUPONS] created coupon=%s (%s)", coupon.id, coupon.title)
    return {"ok": True, "coupon": coupon.to_dict(include_code=True)}


__all__ = ["create_coupon", "list_available_coupons", "list_user_coupons", "redeem_coupon"]

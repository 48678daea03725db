from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


from .user import User, UserRole
from .profile import Profile
from .activity import Activity
from .event import Event, EventParticipant, EventCheckin
from .gamification import Badge, UserBadge, Reward, UserReward, UserStreak
from .coupon import Coupon, UserCoupon
from .organizer_application import OrganizerApplication

__all__ = [
    'db',
    'User',
    'UserRole',
    'Profile',
    'Activity',
    'Event',
    'EventParticipant',
    'EventCheckin',
    'Badge',
    'UserBadge',
    'Reward',
    'UserReward',
    'UserStreak',
    'Coupon',
    'UserCoupon',
    'OrganizerApplication',
]

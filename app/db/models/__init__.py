"""Database models package."""
from app.db.models.member import Member, Team
from app.db.models.push_subscription import PushSubscription

__all__ = [
    "Member",
    "Team",
    "PushSubscription",
]

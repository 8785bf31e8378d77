"""Club member and team models consumed by audience resolution."""
from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.db.base import Base
from app.db.types import RoleSet


class Team(Base):
    """A training group members are assigned to."""

    __tablename__ = "teams"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)

    members = relationship("Member", back_populates="team")


class Member(Base):
    """Represents a club member account."""

    __tablename__ = "members"

    id = Column(Integer, primary_key=True)
    first_name = Column(String(255), nullable=False)
    last_name = Column(String(255), nullable=False)
    email = Column(String(255), index=True)

    # Normalized at the column type; legacy comma-joined values read back as lists
    roles = Column(RoleSet(), nullable=False, default=list)
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="SET NULL"), index=True)
    status = Column(String(20), nullable=False, default="active", index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    team = relationship("Team", back_populates="members")
    push_subscriptions = relationship(
        "PushSubscription",
        back_populates="member",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def has_any_role(self, roles) -> bool:
        """Return whether the member holds at least one of ``roles``."""

        wanted = {str(role).strip().lower() for role in roles}
        return bool(wanted.intersection(self.roles or []))

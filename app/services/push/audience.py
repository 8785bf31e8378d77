"""Turn a targeting spec into the set of member ids to notify."""
from __future__ import annotations

from typing import Iterable, Protocol, Set

from sqlalchemy import Text, select, type_coerce
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.orm import Session
from sqlalchemy.sql import Select

from app.db.models.member import Member
from app.services.push.types import TargetingSpec, TargetKind
from app.utils.exceptions import InvalidTargetingSpec


ACTIVE_STATUS = "active"


def roles_overlap_query(roles: Set[str]) -> Select:
    """Select ids of members whose role array shares an element with ``roles`` (PostgreSQL ``&&``)."""

    return select(Member.id).where(type_coerce(Member.roles, ARRAY(Text)).overlap(sorted(roles)))


class MemberDirectory(Protocol):
    """Member queries the resolver depends on."""

    def member_ids_with_any_role(self, roles: Set[str]) -> Set[int]:  # pragma: no cover - interface definition
        """Return ids of members holding at least one of ``roles`` (lower-case)."""

    def active_member_ids_in_teams(self, team_ids: Set[int]) -> Set[int]:  # pragma: no cover - interface definition
        """Return ids of active members assigned to one of ``team_ids``."""


class SqlMemberDirectory:
    """Member directory backed by the ``members`` table."""

    def __init__(self, db: Session):
        self.db = db

    def member_ids_with_any_role(self, roles: Set[str]) -> Set[int]:
        wanted = {role.lower() for role in roles}
        if not wanted:
            return set()
        if self.db.get_bind().dialect.name == "postgresql":
            return set(self.db.scalars(roles_overlap_query(wanted)))

        # Roles are stored as JSON text elsewhere, so match after loading
        rows = self.db.execute(select(Member.id, Member.roles)).all()
        return {member_id for member_id, member_roles in rows if wanted.intersection(member_roles or [])}

    def active_member_ids_in_teams(self, team_ids: Set[int]) -> Set[int]:
        if not team_ids:
            return set()
        stmt = (
            select(Member.id)
            .where(Member.team_id.in_(team_ids))
            .where(Member.status == ACTIVE_STATUS)
        )
        return set(self.db.scalars(stmt))


class AudienceResolver:
    """Resolve explicit ids, role filters, team filters and the staff shorthand."""

    def __init__(self, directory: MemberDirectory, staff_roles: Iterable[str]):
        self.directory = directory
        self.staff_roles = frozenset(role.strip().lower() for role in staff_roles if role.strip())

    def resolve(self, spec: TargetingSpec) -> Set[int]:
        if not isinstance(spec, TargetingSpec):
            raise InvalidTargetingSpec(f"Expected a TargetingSpec, got {type(spec).__name__}")

        if spec.kind is TargetKind.MEMBERS:
            return set(spec.member_ids)
        if spec.kind is TargetKind.ROLES:
            return self.directory.member_ids_with_any_role(set(spec.roles))
        if spec.kind is TargetKind.TEAMS:
            return self.directory.active_member_ids_in_teams(set(spec.team_ids))
        if spec.kind is TargetKind.ALL_STAFF:
            return self.directory.member_ids_with_any_role(set(self.staff_roles))
        raise InvalidTargetingSpec(f"Unsupported target kind: {spec.kind!r}")

"""Value types shared by audience resolution, channels and dispatch."""
from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from app.utils.exceptions import InvalidPayloadError, InvalidTargetingSpec


ENDPOINT_PREVIEW_CHARS = 50
DETAIL_PREVIEW_CHARS = 200


def preview(text: Optional[str], limit: int = ENDPOINT_PREVIEW_CHARS) -> str:
    """Shorten endpoint URLs and response bodies before they reach the logs."""

    if not text:
        return ""
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


@dataclass(frozen=True)
class NotificationPayload:
    """Content of a single push notification."""

    title: str
    body: str = ""
    url: str = "/"
    icon: Optional[str] = None

    def __post_init__(self) -> None:
        if not isinstance(self.title, str) or not self.title.strip():
            raise InvalidPayloadError("Notification title must be a non-empty string")
        for name in ("body", "url"):
            if not isinstance(getattr(self, name), str):
                raise InvalidPayloadError(f"Notification {name} must be a string")
        if self.icon is not None and not isinstance(self.icon, str):
            raise InvalidPayloadError("Notification icon must be a string")

    def as_dict(self) -> Dict[str, str]:
        data = {"title": self.title, "body": self.body, "url": self.url}
        if self.icon:
            data["icon"] = self.icon
        return data

    def to_wire(self) -> str:
        """Serialize to the JSON document the service worker expects."""

        return json.dumps(self.as_dict(), ensure_ascii=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NotificationPayload":
        if not isinstance(data, dict):
            raise InvalidPayloadError("Notification must be an object")
        return cls(
            title=data.get("title"),  # type: ignore[arg-type]
            body=data.get("body") or "",
            url=data.get("url") or "/",
            icon=data.get("icon"),
        )


class TargetKind(str, Enum):
    MEMBERS = "members"
    ROLES = "roles"
    TEAMS = "teams"
    ALL_STAFF = "all_staff"


def _int_ids(values: Iterable[Any], label: str) -> Tuple[int, ...]:
    ids = []
    for value in values:
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidTargetingSpec(f"{label} must be integers", {"value": repr(value)})
        ids.append(value)
    return tuple(ids)


@dataclass(frozen=True)
class TargetingSpec:
    """Describes who should receive a notification.

    Resolved once per dispatch; never cached, since roles and team
    assignments change between notifications.
    """

    kind: TargetKind
    member_ids: Tuple[int, ...] = ()
    roles: Tuple[str, ...] = ()
    team_ids: Tuple[int, ...] = ()

    def __post_init__(self) -> None:
        try:
            kind = TargetKind(self.kind)
        except ValueError as exc:
            raise InvalidTargetingSpec(f"Unknown target kind: {self.kind!r}") from exc
        object.__setattr__(self, "kind", kind)
        object.__setattr__(self, "member_ids", _int_ids(self.member_ids, "Member ids"))
        object.__setattr__(self, "team_ids", _int_ids(self.team_ids, "Team ids"))

        if isinstance(self.roles, str):
            raise InvalidTargetingSpec("Roles must be a list of role names")
        roles = tuple(str(role).strip().lower() for role in self.roles if role and str(role).strip())
        object.__setattr__(self, "roles", roles)
        if kind is TargetKind.ROLES and not roles:
            raise InvalidTargetingSpec("A role filter needs at least one role")

    @classmethod
    def for_members(cls, member_ids: Iterable[int]) -> "TargetingSpec":
        return cls(TargetKind.MEMBERS, member_ids=tuple(member_ids))

    @classmethod
    def for_roles(cls, roles: Iterable[str]) -> "TargetingSpec":
        if isinstance(roles, str):
            roles = [roles]
        return cls(TargetKind.ROLES, roles=tuple(roles))

    @classmethod
    def for_teams(cls, team_ids: Iterable[int]) -> "TargetingSpec":
        return cls(TargetKind.TEAMS, team_ids=tuple(team_ids))

    @classmethod
    def all_staff(cls) -> "TargetingSpec":
        return cls(TargetKind.ALL_STAFF)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "member_ids": list(self.member_ids),
            "roles": list(self.roles),
            "team_ids": list(self.team_ids),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TargetingSpec":
        if not isinstance(data, dict) or "kind" not in data:
            raise InvalidTargetingSpec("Target must be an object with a 'kind'")
        return cls(
            kind=data["kind"],
            member_ids=tuple(data.get("member_ids") or ()),
            roles=tuple(data.get("roles") or ()),
            team_ids=tuple(data.get("team_ids") or ()),
        )


@dataclass(frozen=True)
class SubscriptionTarget:
    """Detached copy of a subscription row, safe to hand to worker threads."""

    id: uuid.UUID
    member_id: int
    endpoint: str
    p256dh: str
    auth: str

    @classmethod
    def from_subscription(cls, subscription: Any) -> "SubscriptionTarget":
        return cls(
            id=subscription.id,
            member_id=subscription.member_id,
            endpoint=subscription.endpoint,
            p256dh=subscription.p256dh or "",
            auth=subscription.auth or "",
        )

    @property
    def has_key_material(self) -> bool:
        return bool(self.p256dh.strip() and self.auth.strip())

    def subscription_info(self) -> Dict[str, Any]:
        return {"endpoint": self.endpoint, "keys": {"p256dh": self.p256dh, "auth": self.auth}}


@dataclass(frozen=True)
class MemberBatch:
    """All recipients of a hosted-provider dispatch, sent as one request."""

    member_ids: Tuple[int, ...]


@dataclass(frozen=True)
class DeliveryOutcome:
    """Result of one delivery attempt."""

    subscription_id: Optional[uuid.UUID]
    success: bool
    terminal: bool = False
    error_detail: Optional[str] = None
    status_code: Optional[int] = None

    @classmethod
    def delivered(cls, subscription_id: Optional[uuid.UUID], status_code: Optional[int] = None) -> "DeliveryOutcome":
        return cls(subscription_id=subscription_id, success=True, status_code=status_code)

    @classmethod
    def transient(
        cls,
        subscription_id: Optional[uuid.UUID],
        detail: str,
        status_code: Optional[int] = None,
    ) -> "DeliveryOutcome":
        return cls(
            subscription_id=subscription_id,
            success=False,
            terminal=False,
            error_detail=detail,
            status_code=status_code,
        )

    @classmethod
    def dead(
        cls,
        subscription_id: Optional[uuid.UUID],
        detail: str,
        status_code: Optional[int] = None,
    ) -> "DeliveryOutcome":
        return cls(
            subscription_id=subscription_id,
            success=False,
            terminal=True,
            error_detail=detail,
            status_code=status_code,
        )


@dataclass
class DispatchReport:
    """Aggregate, never-raising summary of one notification fan-out."""

    channel: str
    audience: int = 0
    outcomes: List[DeliveryOutcome] = field(default_factory=list)
    removed: int = 0

    @property
    def attempted(self) -> int:
        return len(self.outcomes)

    @property
    def succeeded(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.success)

    @property
    def failed_terminal(self) -> int:
        return sum(1 for outcome in self.outcomes if not outcome.success and outcome.terminal)

    @property
    def failed_transient(self) -> int:
        return sum(1 for outcome in self.outcomes if not outcome.success and not outcome.terminal)

    def summary(self) -> Dict[str, Any]:
        return {
            "channel": self.channel,
            "audience": self.audience,
            "attempted": self.attempted,
            "succeeded": self.succeeded,
            "failed_terminal": self.failed_terminal,
            "failed_transient": self.failed_transient,
            "removed": self.removed,
        }

    def as_dict(self) -> Dict[str, Any]:
        data = self.summary()
        data["outcomes"] = [
            {
                "subscription_id": str(outcome.subscription_id) if outcome.subscription_id else None,
                "success": outcome.success,
                "terminal": outcome.terminal,
                "status_code": outcome.status_code,
                "error_detail": outcome.error_detail,
            }
            for outcome in self.outcomes
        ]
        return data

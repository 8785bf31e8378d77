"""CLI script to send a push notification to members, roles or teams."""
from __future__ import annotations

import argparse
import asyncio

from app.db.session import SessionLocal
from app.services.push.channels import build_channel
from app.services.push.dispatcher import build_dispatcher
from app.services.push.types import NotificationPayload, TargetingSpec
from app.tasks.notifications import dispatch_notification


def _build_spec(args: argparse.Namespace) -> TargetingSpec:
    if args.member:
        return TargetingSpec.for_members(args.member)
    if args.role:
        return TargetingSpec.for_roles(args.role)
    if args.team:
        return TargetingSpec.for_teams(args.team)
    return TargetingSpec.all_staff()


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Send a push notification (defaults to all staff)",
    )
    target = parser.add_mutually_exclusive_group()
    target.add_argument("--member", type=int, action="append", help="Member id (repeatable)")
    target.add_argument("--role", action="append", help="Role name (repeatable)")
    target.add_argument("--team", type=int, action="append", help="Team id (repeatable)")
    parser.add_argument("--title", default="Test", help="Notification title")
    parser.add_argument("--body", default="This is a test notification.", help="Notification body")
    parser.add_argument("--url", default="/", help="Deep link opened on click")
    parser.add_argument("--channel", choices=["direct", "hosted"], default=None)
    parser.add_argument(
        "--async",
        action="store_true",
        dest="use_async",
        help="Queue task asynchronously instead of running immediately",
    )

    args = parser.parse_args()
    spec = _build_spec(args)
    payload = NotificationPayload(title=args.title, body=args.body, url=args.url)

    if args.use_async:
        task = dispatch_notification.apply_async(args=(spec.as_dict(), payload.as_dict(), args.channel))
        print(f"Task queued: {task.id}")
        return

    channel = build_channel(args.channel)
    db = SessionLocal()
    try:
        report = asyncio.run(build_dispatcher(db).dispatch(spec, payload, channel))
    finally:
        channel.close()
        db.close()
    print(f"Result: {report.summary()}")
    for outcome in report.outcomes:
        if not outcome.success:
            print(f"  {outcome.subscription_id}: {outcome.error_detail}")


if __name__ == "__main__":
    main()

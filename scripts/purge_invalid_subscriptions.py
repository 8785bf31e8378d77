"""CLI script to delete push subscriptions stored without key material."""
from __future__ import annotations

import argparse

from app.tasks.notifications import purge_invalid_subscriptions


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Remove push subscriptions that can never be delivered",
    )
    parser.add_argument(
        "--async",
        action="store_true",
        dest="use_async",
        help="Queue task asynchronously instead of running immediately",
    )
    args = parser.parse_args()

    if args.use_async:
        task = purge_invalid_subscriptions.apply_async()
        print(f"Task queued: {task.id}")
    else:
        result = purge_invalid_subscriptions.run()
        print(f"Removed {result['removed']} subscriptions")


if __name__ == "__main__":
    main()

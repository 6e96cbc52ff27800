"""CLI: provision rollover groups, run daily rollover checks, show key status.

Connection and lifecycle settings come from ``DYNAMIC_ILM_*`` env vars.

    python -m dynamic_ilm provision nginx api
    python -m dynamic_ilm check-rollover nginx
"""

import argparse
import json
import logging
import sys

from .exceptions import DynamicIlmError
from .manager import DynamicIlmManager
from .naming import validate_key


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        prog="dynamic_ilm",
        description="Manage per-key ILM policies, templates and write aliases",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    provision = sub.add_parser("provision", help="Create policy, template and write alias")
    provision.add_argument("keys", nargs="+", help="Rollover group keys")

    check = sub.add_parser("check-rollover", help="Roll over write indices dated before today")
    check.add_argument("keys", nargs="+", help="Rollover group keys")

    status = sub.add_parser("status", help="Print resource names and current write index")
    status.add_argument("keys", nargs="+", help="Rollover group keys")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    logger = logging.getLogger("dynamic_ilm")

    try:
        manager = DynamicIlmManager()
    except Exception as exc:
        logger.error("Could not connect to the cluster: %s", exc)
        return 1

    failures = 0

    for key in args.keys:
        try:
            if args.command == "provision":
                if not manager.ensure(key):
                    failures += 1
            elif args.command == "check-rollover":
                validate_key(key)
                manager.coordinator.ensure_ready(key)
                # A fresh process has no marker; force the check for today.
                manager.cache.clear_daily_check(key)
                new_unit = manager.rollover.check(key)
                print(f"{key}: {'rolled over to ' + new_unit if new_unit else 'current'}")
            else:
                validate_key(key)
                info = manager.status(key)
                info["write_index"] = manager.store.get_write_unit_for_alias(key)
                print(json.dumps(info))
        except DynamicIlmError as exc:
            logger.error("%s: %s", key, exc)
            failures += 1

    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())

#!/usr/bin/env python3
"""Run a directory reconciliation pass outside the web app (cron, one-off).

Usage:
  python scripts/sync_directories.py                 # every directory
  python scripts/sync_directories.py --directory slack
  python scripts/sync_directories.py --actor-email admin@example.com

Exit status is non-zero if any directory could not be listed or any
add/remove call failed.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.adminflow import create_app
from app.adminflow.db import session_scope
from app.adminflow.models import User
from app.adminflow.modules.directory_sync.clients import DIRECTORIES
from app.adminflow.modules.directory_sync.service import run_directory_sync


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Reconcile active users into external directories.")
    parser.add_argument("--directory", choices=DIRECTORIES, action="append", help="Directory to sync (repeatable)")
    parser.add_argument("--actor-email", default="", help="Attribute the run to this user in the audit log")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    app = create_app()
    directories = args.directory or list(DIRECTORIES)

    ok = True
    with app.app_context(), session_scope(app) as s:
        actor = None
        if args.actor_email:
            actor = s.query(User).filter(User.email.ilike(args.actor_email.strip())).one_or_none()
            if not actor:
                print(f"User not found: {args.actor_email}")
                return 2

        for directory in directories:
            run, result = run_directory_sync(s, user=actor, directory=directory, config=app.config)
            mode = "demo" if run.demo_mode else "live"
            print(f"[{directory}] ({mode}) {result.message}")
            for f in result.failures:
                print(f"  FAILED {f.action} {f.identity}: {f.reason}")
            if result.fetch_failed or result.failures:
                ok = False
    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())

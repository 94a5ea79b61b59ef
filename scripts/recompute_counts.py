"""Rebuild cached session counts from attendance records.

Usage: python scripts/recompute_counts.py [SESSION_ID ...]
Without ids, every session is recomputed.
"""

from __future__ import annotations

import sys
from pathlib import Path

import importlib

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from config import get_settings_module

from src.class_attendance.class_attendance.container import build_container


def main(argv: list[str]) -> None:
    settings = importlib.import_module(get_settings_module())
    container = build_container(db_config=settings.DB_CONFIG)

    if argv:
        session_ids = [int(a) for a in argv]
    else:
        session_ids = [s.session_id for s in container.sessions_repo.list_sessions(limit=1_000_000)]

    for session_id in session_ids:
        counts = container.ledger.recompute_counts(session_id)
        print(
            f"session {session_id}: present={counts.present} late={counts.late} "
            f"absent={counts.absent} excused={counts.excused} total={counts.total_students}"
        )


if __name__ == "__main__":
    main(sys.argv[1:])

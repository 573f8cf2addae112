#!/usr/bin/env python3
"""Run the push fan-out for one notification (manual retry after a 502 or a failed background push).
Duplicate pushes are possible if an earlier attempt got partway; that is acceptable.
Run from backend: python scripts/send_push.py <notification_id>
"""
import argparse
import json
import sys
from pathlib import Path

backend_dir = Path(__file__).resolve().parent.parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

from app.core.errors import NotificationError
from app.db.session import SessionLocal
from app.services.push import send_push_for_notification


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("notification_id")
    args = parser.parse_args()

    db = SessionLocal()
    try:
        result = send_push_for_notification(db, args.notification_id)
        print(json.dumps(result))
        return 0
    except NotificationError as e:
        print(json.dumps(e.to_body()), file=sys.stderr)
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())

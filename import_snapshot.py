"""
Imports a legacy data.json (requests, responses, acceptedUsers) into the database,
replacing its current contents. With --export, writes the database out in the same layout.

Usage:
    python import_snapshot.py data.json
    python import_snapshot.py backup.json --export
"""

import argparse
import json
import sys
from src.core.database import init_db
from src.models.schemas import Snapshot
from src.services.request_store import RequestStore

def import_snapshot(path: str, store: RequestStore) -> bool:
    with open(path, encoding="utf-8") as f:
        snapshot = Snapshot.model_validate(json.load(f))

    print(f"📥 Read {len(snapshot.requests)} requests, {len(snapshot.responses)} responses, "
          f"{len(snapshot.accepted_user_ids)} accepted users")
    return store.save_snapshot(snapshot)

def export_snapshot(path: str, store: RequestStore) -> bool:
    snapshot = store.load_snapshot()
    with open(path, "w", encoding="utf-8") as f:
        json.dump(snapshot.model_dump(by_alias=True), f, ensure_ascii=False, indent=2)

    print(f"📤 Wrote {len(snapshot.requests)} requests, {len(snapshot.responses)} responses")
    return True

if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Import or export the bot data snapshot")
    parser.add_argument("path", help="Path to the data.json file")
    parser.add_argument("--export", action="store_true", help="Export the database instead of importing")
    args = parser.parse_args()

    init_db()
    store = RequestStore()

    ok = export_snapshot(args.path, store) if args.export else import_snapshot(args.path, store)
    if not ok:
        print("❌ Snapshot operation failed, see the log for details")
        sys.exit(1)
    print("✅ Done!")

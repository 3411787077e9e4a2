"""
Script to wipe every table of the bot database.
WARNING: this deletes ALL data!
"""

import sys
from src.core.database import SessionLocal, init_db
from src.models.agreement import AgreementAcceptance
from src.models.help_request import HelpRequest
from src.models.response import Response

def clear_database():
    """Deletes all requests, responses and agreement acceptances"""

    print("⚠️  WARNING: this will DELETE ALL DATA in the database!")
    print("\nTables to be cleared:")
    print("  - responses")
    print("  - help_requests")
    print("  - agreement_acceptances")

    confirm = input("\nAre you sure? Type 'YES' to confirm: ")

    if confirm != "YES":
        print("❌ Operation cancelled.")
        return

    db = SessionLocal()

    try:
        print("\n🗑️  Clearing database...")

        responses_count = db.query(Response).delete()
        print(f"  ✅ Deleted {responses_count} responses")

        requests_count = db.query(HelpRequest).delete()
        print(f"  ✅ Deleted {requests_count} requests")

        agreements_count = db.query(AgreementAcceptance).delete()
        print(f"  ✅ Deleted {agreements_count} agreement acceptances")

        db.commit()
        print("\n✅ Database cleared successfully!")

    except Exception as e:
        print(f"\n❌ Error clearing database: {e}")
        db.rollback()
        sys.exit(1)
    finally:
        db.close()

def show_stats():
    """Prints row counts"""
    db = SessionLocal()
    try:
        print("\n📊 Database stats:")
        print(f"  - Requests: {db.query(HelpRequest).count()}")
        print(f"  - Responses: {db.query(Response).count()}")
        print(f"  - Agreements: {db.query(AgreementAcceptance).count()}")
    finally:
        db.close()

if __name__ == "__main__":
    print("=" * 60)
    print("🧹 VOLUNTEER BOT - Database cleanup")
    print("=" * 60)

    init_db()
    show_stats()
    clear_database()
    show_stats()

    print("\n" + "=" * 60)
    print("✅ Done!")
    print("=" * 60)

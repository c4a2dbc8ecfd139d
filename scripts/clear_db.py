"""
Database cleanup script for resetting a development database.
"""

import os
import sys
from pathlib import Path
import argparse

# Add the parent directory to the Python path
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))
# set working directory to the project root
os.chdir(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from db_config import get_db
from models.models import User

# Children first so plain DELETEs never trip a foreign key
ALL_TABLES = [
    "download_log",
    "ai_chat_message",
    "ai_credit",
    "user_subject_selection",
    "enrollment",
    "note",
    "topic",
    "subject",
    "user_session",
    "user_role",
    '"user"',  # Quoted because USER is a reserved keyword
]

# Per-user activity; catalog, accounts and enrollments stay
USAGE_TABLES = ["download_log", "ai_chat_message", "ai_credit", "user_session"]

USER_FK_TABLES = [
    ("download_log", "user_id"),
    ("ai_chat_message", "user_id"),
    ("ai_credit", "user_id"),
    ("user_subject_selection", "user_id"),
    ("enrollment", "user_id"),
    ("user_session", "user_id"),
    ("user_role", "user_id"),
]


def _confirm(prompt: str, confirm: bool) -> bool:
    if confirm:
        return True
    response = input(f"⚠️  {prompt} (yes/no): ")
    if response.lower() != "yes":
        print("❌ Operation cancelled.")
        return False
    return True


def clear_all_tables(db: Session, confirm: bool = False):
    """Clear all data from all tables using TRUNCATE ... CASCADE."""
    if not _confirm("This will DELETE ALL DATA from the database. Are you sure?", confirm):
        return False

    print("🗑️  Clearing all database tables using TRUNCATE...")
    try:
        for table_name in ALL_TABLES:
            db.execute(text(f"TRUNCATE TABLE {table_name} RESTART IDENTITY CASCADE;"))
            print(f"   ✅ Truncated {table_name}")
        db.commit()
        print("\n✅ Database cleared successfully!")
        return True
    except SQLAlchemyError as e:
        db.rollback()
        print(f"\n❌ Error clearing database: {str(e)}")
        return False


def clear_usage_data(db: Session, confirm: bool = False):
    """Clear download logs, chat history, credit records and sessions."""
    if not _confirm("This will DELETE ALL USAGE DATA but keep users and content. Continue?", confirm):
        return False

    print("🗑️  Clearing usage data...")
    try:
        for table in USAGE_TABLES:
            result = db.execute(text(f"DELETE FROM {table}"))
            print(f"   ✅ Cleared {table}: {result.rowcount} records deleted")
        db.commit()
        print("\n✅ Usage data cleared successfully!")
        return True
    except SQLAlchemyError as e:
        db.rollback()
        print(f"\n❌ Error clearing usage data: {str(e)}")
        return False


def clear_test_users(db: Session, confirm: bool = False):
    """Clear only test users and their associated data."""
    if not _confirm("This will DELETE TEST USERS and their data. Continue?", confirm):
        return False

    print("🗑️  Clearing test users...")
    test_users = (
        db.query(User)
        .filter((User.username.like("%test%")) | (User.email.like("%test%@%")))
        .all()
    )
    print(f"Found {len(test_users)} test users:")
    for user_obj in test_users:
        print(f"   - {user_obj.username} ({user_obj.email})")

    if not test_users:
        return True

    user_ids = [user_obj.id for user_obj in test_users]
    try:
        for table, user_column in USER_FK_TABLES:
            result = db.execute(
                text(f"DELETE FROM {table} WHERE {user_column} = ANY(:user_ids_param)"),
                {"user_ids_param": user_ids},
            )
            if result.rowcount > 0:
                print(f"   ✅ Cleared {result.rowcount} records from {table}")

        result = db.execute(
            text('DELETE FROM "user" WHERE id = ANY(:user_ids_param)'),
            {"user_ids_param": user_ids},
        )
        print(f"   ✅ Deleted {result.rowcount} test users")
        db.commit()
        print("\n✅ Test users cleared successfully!")
        return True
    except SQLAlchemyError as e:
        db.rollback()
        print(f"\n❌ Error clearing test users: {str(e)}")
        return False


def clear_all_logs():
    """Clear all logs from the logs directory."""
    print("🗑️  Clearing all logs...")
    logs_dir = Path("logs")
    if not logs_dir.is_dir():
        print(f"   ℹ️  Logs directory not found or not a directory: {logs_dir}")
        return
    for file in logs_dir.iterdir():
        if file.is_file():
            try:
                file.unlink()
                print(f"   ✅ Deleted {file.name}")
            except OSError as e:
                print(f"   ⚠️  Error deleting {file.name}: {str(e)}")


def main():
    parser = argparse.ArgumentParser(description="Database and log cleanup utility")
    parser.add_argument("--all", action="store_true", help="Clear all data from database using TRUNCATE")
    parser.add_argument("--usage", action="store_true",
                        help="Clear download logs, chat history, credits and sessions")
    parser.add_argument("--test-users", action="store_true", help="Clear test users and their associated data")
    parser.add_argument("--logs", action="store_true", help="Clear all logs from the logs directory")
    parser.add_argument("--yes", "-y", action="store_true",
                        help="Auto-confirm dangerous operations (use with caution!)")

    args = parser.parse_args()

    if not any([args.all, args.usage, args.test_users, args.logs]):
        print("🧹 Database & Log Cleanup Utility")
        print("=" * 33)
        parser.print_help()
        print("\n📋 Tables in Database:")
        for i, table in enumerate(ALL_TABLES, 1):
            print(f"   {i:2d}. {table.strip(chr(34))}")
        print("\nExample: python scripts/clear_db.py --usage --yes")
        return

    db_session = None
    try:
        if args.all or args.usage or args.test_users:
            db_session = next(get_db())

        if args.all:
            clear_all_tables(db_session, args.yes)
        elif args.usage:
            clear_usage_data(db_session, args.yes)
        elif args.test_users:
            clear_test_users(db_session, args.yes)

        if args.logs:
            clear_all_logs()

        print("\n🎉 Cleanup completed!")
    finally:
        if db_session:
            db_session.close()


if __name__ == "__main__":
    main()

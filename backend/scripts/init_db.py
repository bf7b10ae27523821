"""
Script to create all database tables.
Safe to re-run: existing tables are left untouched.
"""
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from chatguard.core.config import DATABASE_DSN
from chatguard.core.database import Base, init_db


def main():
    """Create tables for all models."""
    try:
        init_db()
    except Exception as e:
        print(f"❌ Error creating tables: {e}")
        raise

    print("✅ Database tables created")
    print(f"   DSN: {DATABASE_DSN.split('@')[-1]}")
    for table_name in sorted(Base.metadata.tables):
        print(f"   - {table_name}")


if __name__ == "__main__":
    main()

"""
Script to create an admin user.
Run this after init_db.py to create the initial admin account.
"""
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from chatguard.core.auth import hash_password
from chatguard.core.database import SessionLocal
from chatguard.models.user import User
from chatguard.services.quota import get_or_create_user_quota


def create_admin_user(email: str, password: str, full_name: str = "Admin User"):
    """Create an admin user with default spend limits."""
    db = SessionLocal()
    try:
        existing = db.query(User).filter(User.email == email).first()
        if existing:
            print(f"User with email {email} already exists!")
            return

        admin = User(
            email=email,
            hashed_password=hash_password(password),
            full_name=full_name,
            is_active=True,
            is_admin=True
        )

        db.add(admin)
        db.commit()
        db.refresh(admin)

        quota = get_or_create_user_quota(db, admin.id)
        print(f"✅ Admin user created successfully!")
        print(f"   Email: {email}")
        print(f"   Daily limit: ${quota.daily_limit}")

    except Exception as e:
        db.rollback()
        print(f"❌ Error creating admin user: {e}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    import argparse
    parser = argparse.ArgumentParser(description='Create admin user')
    parser.add_argument('--email', required=True, help='Admin email')
    parser.add_argument('--password', required=True, help='Admin password')
    parser.add_argument('--name', default='Admin User', help='Admin full name')

    args = parser.parse_args()
    create_admin_user(args.email, args.password, args.name)

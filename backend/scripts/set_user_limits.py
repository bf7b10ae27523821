"""
Script to set a user's daily and/or monthly spend limits (USD).
"""
import sys
from decimal import Decimal, InvalidOperation
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from chatguard.core.database import SessionLocal
from chatguard.models.user import User
from chatguard.services.quota import set_user_limits, get_user_limit_status


def _parse_amount(value):
    if value is None:
        return None
    try:
        return Decimal(value)
    except InvalidOperation:
        raise SystemExit(f"❌ Invalid amount: {value}")


def update_limits(email: str, daily=None, monthly=None):
    """Set limits for the user with the given email and print the resulting status."""
    db = SessionLocal()
    try:
        user = db.query(User).filter(User.email == email).first()
        if not user:
            print(f"User with email {email} not found!")
            return

        quota = set_user_limits(db, user.id, daily_limit=daily, monthly_limit=monthly)
        status = get_user_limit_status(db, user.id)

        print(f"✅ Limits updated for {email}")
        print(f"   Daily:   ${status.daily.spent:.4f} of ${Decimal(str(quota.daily_limit)):.4f}")
        print(f"   Monthly: ${status.monthly.spent:.4f} of ${Decimal(str(quota.monthly_limit)):.4f}")

    except Exception as e:
        db.rollback()
        print(f"❌ Error setting limits: {e}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    import argparse
    parser = argparse.ArgumentParser(description='Set user spend limits')
    parser.add_argument('--email', required=True, help='User email')
    parser.add_argument('--daily', default=None, help='Daily limit in USD')
    parser.add_argument('--monthly', default=None, help='Monthly limit in USD')

    args = parser.parse_args()
    if args.daily is None and args.monthly is None:
        parser.error("at least one of --daily or --monthly is required")
    update_limits(args.email, _parse_amount(args.daily), _parse_amount(args.monthly))

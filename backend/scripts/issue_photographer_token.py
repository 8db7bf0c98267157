#!/usr/bin/env python3
"""
Issue a photographer bearer token.

Usage:
    # Token for an existing photographer
    python issue_photographer_token.py --email photographer@example.com

    # Create the account first if it does not exist
    python issue_photographer_token.py --email photographer@example.com --create

    # Custom lifetime
    python issue_photographer_token.py --email photographer@example.com --days 30
"""

import argparse
import sys
import os

# Add parent directory to path to import backend modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy.exc import SQLAlchemyError

from snapmatch.core.errors import NotConfigured
from snapmatch.core.security import issue_photographer_token
from snapmatch.db.session import SessionLocal
from snapmatch.models import User, UserRole


def issue_token(email: str, create: bool, days: int) -> bool:
    """Print a photographer token for ``email``"""
    email = email.strip().lower()
    db = SessionLocal()
    try:
        user = db.query(User).filter(User.email == email).first()
        if not user:
            if not create:
                print(f"❌ User not found: {email} (use --create)")
                return False
            user = User(email=email, role=UserRole.PHOTOGRAPHER.value)
            db.add(user)
            db.commit()
            db.refresh(user)
            print(f"✅ Created photographer {email} ({user.id})")

        token = issue_photographer_token(user.id, expires_in_seconds=days * 24 * 60 * 60)
        print(f"✅ Token for {email} (valid {days} day(s)):")
        print(token)
        return True

    except (SQLAlchemyError, NotConfigured) as e:
        print(f"❌ Error: {e}")
        db.rollback()
        return False
    finally:
        db.close()


def main():
    parser = argparse.ArgumentParser(description="Issue a photographer bearer token")
    parser.add_argument("--email", required=True, help="Photographer email")
    parser.add_argument("--create", action="store_true", help="Create the photographer if missing")
    parser.add_argument("--days", type=int, default=7, help="Token lifetime in days (default: 7)")
    args = parser.parse_args()

    if args.days < 1:
        parser.error("--days must be at least 1")

    sys.exit(0 if issue_token(args.email, args.create, args.days) else 1)


if __name__ == "__main__":
    main()

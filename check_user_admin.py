#!/usr/bin/env python3
"""
Script to check a user's role by email.
Usage: python check_user_admin.py <email>
Exits 0 when the user is an admin or super admin, 1 otherwise.
"""

import sys
import os

# Add the project root to the path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))


def check_user_admin(email: str) -> bool:
    """Print the user's role and whether it grants admin access."""
    from cyclofit.shared.auth.database import get_db, User

    db = next(get_db())

    try:
        user = db.query(User).filter(User.email == email.strip().lower()).first()

        if not user:
            print(f"User with email '{email}' not found")
            return False

        print(f"Email: {user.email}")
        print(f"User ID: {user.id}")
        print(f"Full Name: {user.full_name}")
        print(f"Role: {user.role}")
        print(f"Active: {user.is_active}")
        print(f"Is Admin: {user.is_admin}")

        return user.is_admin
    finally:
        db.close()


if __name__ == "__main__":
    if len(sys.argv) != 2:
        print("Usage: python check_user_admin.py <email>")
        sys.exit(1)

    sys.exit(0 if check_user_admin(sys.argv[1]) else 1)

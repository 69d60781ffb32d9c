#!/usr/bin/env python3
"""
Script to create an admin account.
Can be run locally or on Heroku via:
    heroku run python create_admin.py <email> <password> <first_name> <last_name> [admin|super_admin]
"""

import sys
import os

# Add the project root to the path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))


def create_admin(email: str, password: str, first_name: str, last_name: str, role: str = "admin") -> bool:
    """Create a verified admin account; prints the outcome."""
    from cyclofit.shared.admin.setup import create_admin_user, get_admin_counts
    from cyclofit.shared.auth.database import get_db, init_db

    init_db()
    db = next(get_db())

    try:
        user = create_admin_user(db, email, password, first_name, last_name, role)
    except ValueError as e:
        print(f"Error: {str(e)}")
        return False
    finally:
        counts = get_admin_counts(db)
        db.close()

    print(f"Created {user.role} account {user.email} (user_id: {user.id})")
    print(f"Admins: {counts['total_admins']}, super admins: {counts['super_admins']}")
    return True


if __name__ == "__main__":
    if len(sys.argv) not in (5, 6):
        print("Usage: python create_admin.py <email> <password> <first_name> <last_name> [admin|super_admin]")
        sys.exit(1)

    sys.exit(0 if create_admin(*sys.argv[1:]) else 1)

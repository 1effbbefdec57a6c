"""
GDSC API - Admin Seed Script

Creates (or promotes) an admin account for development. The admin role
cannot be granted through the API.

Usage:
    python scripts/seed_admin.py admin@gdsc.local
"""

import sys
from getpass import getpass

from sqlmodel import Session, select

from gdsc_api.config import Settings
from gdsc_api.auth.database import get_engine, init_db
from gdsc_api.auth.models import User, Role
from gdsc_api.auth.password import hash_password


def seed_admin_user(email: str, password: str) -> None:
    """Create an admin credential account, or promote an existing one."""
    settings = Settings()
    engine = get_engine(settings.DATABASE_URL)
    init_db(engine)

    email = email.lower()

    with Session(engine) as session:
        existing = session.exec(select(User).where(User.email == email)).first()

        if existing:
            existing.role = Role.ADMIN
            session.add(existing)
            session.commit()
            print(f"Promoted {email} to admin.")
            return

        admin = User(
            email=email,
            password_hash=hash_password(password),
            role=Role.ADMIN,
            is_onboarded=True,
            email_verified=True,
        )

        session.add(admin)
        session.commit()

        print("Admin user created successfully!")
        print(f"  Email: {email}")
        print("  Role: admin")


if __name__ == "__main__":
    if len(sys.argv) != 2:
        print(__doc__)
        sys.exit(1)

    print("=" * 50)
    print("GDSC API - Admin Seed Script")
    print("=" * 50)

    seed_admin_user(sys.argv[1], getpass("Password: "))

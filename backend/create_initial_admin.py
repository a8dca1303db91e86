# backend/create_initial_admin.py

import os

from labstore.database import SessionLocal
from labstore.apps.accounts import services as account_services


def main() -> None:
    username = os.getenv("DEFAULT_ADMIN_USERNAME", "admin")
    password = os.getenv("DEFAULT_ADMIN_PASSWORD", "admin123")

    db = SessionLocal()
    try:
        admin = account_services.ensure_default_admin(db, username=username, password=password)
        if admin is None:
            print("[INFO] An admin already exists; nothing to do.")
            return

        print("[OK] Created admin:")
        print(f"  id:       {admin.id}")
        print(f"  username: {admin.username}")
        print("  Change the password after first login (POST /auth/change-credentials).")
    finally:
        db.close()


if __name__ == "__main__":
    main()

# create_admin.py
"""Bootstrap a SUPER_ADMIN account.

    ADMIN_USERNAME=admin ADMIN_PASSWORD='...' python create_admin.py
"""
import os
import sys

from washstation import create_app
from washstation.extensions import db
from washstation.models import User
from washstation.utils.passwords import hash_password, validate_password

USERNAME = os.environ.get("ADMIN_USERNAME", "admin").strip()
PASSWORD = os.environ.get("ADMIN_PASSWORD", "")

app = create_app()

with app.app_context():
    ok, msg = validate_password(PASSWORD)
    if not ok:
        sys.exit(f"ADMIN_PASSWORD rejected: {msg}")

    user = User.query.filter_by(username=USERNAME).first()
    if user is None:
        user = User(username=USERNAME)
        db.session.add(user)
        print("Creating admin user...")
    else:
        print("Admin user exists, resetting password and role...")

    user.role = "SUPER_ADMIN"
    user.password_hash = hash_password(PASSWORD)
    db.session.commit()

    print("Admin ready:", USERNAME)

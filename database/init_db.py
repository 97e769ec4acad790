"""
Database initialization script
Creates the tables and the first super-admin account.

Env vars:
  - ADMIN_USERNAME (default: admin)
  - ADMIN_EMAIL (required)
  - ADMIN_PASSWORD (required, at least 12 characters)
  - ADMIN_FIRST_NAME / ADMIN_LAST_NAME (optional)
"""
import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app import create_app
from extensions import db
from models.staff import StaffRole, StaffUser


def seed_super_admin():
    """Create the first super-admin if none exists"""
    print("Creating super-admin...")

    if StaffUser.query.filter_by(role=StaffRole.SUPER_ADMIN.value).first():
        print("  - A super-admin already exists")
        return False

    username = (os.getenv('ADMIN_USERNAME') or 'admin').strip()
    email = (os.getenv('ADMIN_EMAIL') or '').strip().lower()
    password = os.getenv('ADMIN_PASSWORD') or ''

    if not email or len(password) < 12:
        raise SystemExit("ADMIN_EMAIL and ADMIN_PASSWORD (12+ characters) must be set")

    admin = StaffUser(
        username=username,
        first_name=(os.getenv('ADMIN_FIRST_NAME') or 'Super').strip(),
        last_name=(os.getenv('ADMIN_LAST_NAME') or 'Admin').strip(),
        email=email,
        password=password,
        role=StaffRole.SUPER_ADMIN.value,
    )
    db.session.add(admin)
    db.session.commit()
    print(f"  ✓ Super-admin '{username}' created")
    return True


def init_database(app=None):
    """Create tables and seed the first account"""
    app = app or create_app()
    with app.app_context():
        print("Creating tables...")
        db.create_all()
        print("  ✓ Tables ready")
        seed_super_admin()


if __name__ == '__main__':
    init_database()
    print("\nDatabase initialization complete!")

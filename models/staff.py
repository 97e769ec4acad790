"""
Staff user model for authentication and user management
"""
from datetime import datetime
from enum import Enum

from extensions import db
from services.credentials import hash_secret, verify_secret


class StaffRole(str, Enum):
    SUPER_ADMIN = 'SUPER_ADMIN'
    STAFF = 'STAFF'


class StaffStatus(str, Enum):
    ACTIVE = 'ACTIVE'
    DISABLED = 'DISABLED'


class StaffUser(db.Model):
    """Admin panel account: super-admins and staff"""
    __tablename__ = 'staff_users'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False)
    username = db.Column(db.String(100), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)

    role = db.Column(db.String(20), nullable=False, default=StaffRole.STAFF.value)
    status = db.Column(db.String(20), nullable=False, default=StaffStatus.ACTIVE.value)

    # Timestamps
    created_at = db.Column(db.DateTime, default=datetime.now)
    updated_at = db.Column(db.DateTime, default=datetime.now, onupdate=datetime.now)

    def __init__(self, username, first_name, last_name, email, password, role=StaffRole.STAFF.value, **kwargs):
        self.username = username
        self.first_name = first_name
        self.last_name = last_name
        self.email = email
        self.set_password(password)
        self.role = role
        for key, value in kwargs.items():
            if hasattr(self, key):
                setattr(self, key, value)

    def set_password(self, password):
        """Hash and set password"""
        self.password_hash = hash_secret(password)

    def check_password(self, password):
        """Verify password"""
        return verify_secret(password, self.password_hash)

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}"

    @property
    def is_active(self):
        return self.status == StaffStatus.ACTIVE.value

    @property
    def is_super_admin(self):
        return self.role == StaffRole.SUPER_ADMIN.value

    def to_dict(self):
        """Convert to dictionary. The password hash never leaves the model."""
        return {
            'id': self.id,
            'firstName': self.first_name,
            'lastName': self.last_name,
            'email': self.email,
            'username': self.username,
            'role': self.role,
            'status': self.status,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f'<StaffUser {self.username} ({self.role})>'

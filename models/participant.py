"""
Participant model - promotion members and their points ledger
"""
from datetime import datetime
from enum import Enum

from extensions import db


class ParticipantStatus(str, Enum):
    ACTIVE = 'ACTIVE'
    LOCKED = 'LOCKED'


class Participant(db.Model):
    """Registered participant.

    total_points is the historical sum of everything ever earned;
    active_points is the spendable balance and never goes negative.
    """
    __tablename__ = 'participants'
    __table_args__ = (
        db.CheckConstraint('active_points >= 0', name='ck_participants_active_points_non_negative'),
        db.CheckConstraint('total_points >= 0', name='ck_participants_total_points_non_negative'),
    )

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    unique_id = db.Column(db.String(9), unique=True, nullable=False, index=True)

    # Identity
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)
    gov_id = db.Column(db.String(50), unique=True, nullable=False)
    phone = db.Column(db.String(20), unique=True, nullable=False, index=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)

    # Points
    total_points = db.Column(db.Integer, nullable=False, default=0)
    active_points = db.Column(db.Integer, nullable=False, default=0)

    status = db.Column(db.String(20), nullable=False, default=ParticipantStatus.ACTIVE.value)

    # Timestamps
    created_at = db.Column(db.DateTime, default=datetime.now, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.now, onupdate=datetime.now)

    @property
    def name(self):
        return f"{self.first_name} {self.last_name}"

    @property
    def is_locked(self):
        return self.status == ParticipantStatus.LOCKED.value

    def to_dict(self):
        return {
            'id': self.id,
            'uniqueId': self.unique_id,
            'firstName': self.first_name,
            'lastName': self.last_name,
            'govId': self.gov_id,
            'phone': self.phone,
            'email': self.email,
            'totalPoints': self.total_points,
            'activePoints': self.active_points,
            'status': self.status,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f'<Participant {self.unique_id}>'

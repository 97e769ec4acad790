"""
Transaction log model - append-only audit trail
"""
from datetime import datetime
from enum import Enum

from extensions import db


class LogType(str, Enum):
    REGISTER = 'REGISTER'
    ADD_POINTS = 'ADD_POINTS'
    REDEEM = 'REDEEM'
    LOCK_PARTICIPANT = 'LOCK_PARTICIPANT'
    UNLOCK_PARTICIPANT = 'UNLOCK_PARTICIPANT'
    STAFF_CREATE = 'STAFF_CREATE'
    RESET_PASSWORD = 'RESET_PASSWORD'
    STAFF_ACTIVATE = 'STAFF_ACTIVATE'
    STAFF_DEACTIVATE = 'STAFF_DEACTIVATE'


class TransactionLogEntry(db.Model):
    """One row per mutating domain operation, written in the same transaction"""
    __tablename__ = 'transaction_log'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    type = db.Column(db.String(30), nullable=False, index=True)
    participant_id = db.Column(db.Integer, db.ForeignKey('participants.id'), nullable=True, index=True)
    staff_user_id = db.Column(db.Integer, db.ForeignKey('staff_users.id', ondelete='SET NULL'), nullable=True)
    points_change = db.Column(db.Integer, nullable=True)
    prize_id = db.Column(db.Integer, db.ForeignKey('prizes.id', ondelete='SET NULL'), nullable=True)
    note = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.now, nullable=False, index=True)

    # Relationships
    participant = db.relationship('Participant', backref=db.backref('log_entries', lazy='dynamic'))
    staff_user = db.relationship('StaffUser', backref=db.backref('log_entries', lazy='dynamic'))
    prize = db.relationship('Prize', backref=db.backref('log_entries', lazy='dynamic'))

    def to_dict(self):
        return {
            'id': self.id,
            'type': self.type,
            'participantId': self.participant_id,
            'participantName': self.participant.name if self.participant else None,
            'staffUserId': self.staff_user_id,
            'staffName': self.staff_user.full_name if self.staff_user else None,
            'pointsChange': self.points_change,
            'prizeId': self.prize_id,
            'prizeName': self.prize.name if self.prize else None,
            'note': self.note,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f'<TransactionLogEntry {self.id} {self.type}>'
